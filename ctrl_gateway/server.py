# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
CTRL Gateway - MCP server for device control

Owns every piece of shared protocol state (session table, rate buckets,
allowlist snapshot, SSE channels) and serves them through one FastAPI
application. Nothing here is a module-level singleton, so several
gateways can live in one process (tests do exactly that).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from types import FrameType
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, Response

from ctrl_gateway.core.config import Config
from ctrl_gateway.core.errors import GatewayError
from ctrl_gateway.core.logging import log_event
from ctrl_gateway.mcp_handler import MCPHandler
from ctrl_gateway.mcp_session_manager import MCPSessionManager
from ctrl_gateway.security.access_gate import AccessGate
from ctrl_gateway.security.allowlist_store import AllowlistStore
from ctrl_gateway.security.rate_limiter import TokenBucketRateLimiter, monotonic_ms
from ctrl_gateway.tools.capabilities import Capabilities
from ctrl_gateway.tools.dispatcher import ToolDispatcher
from ctrl_gateway.transports import sse, streamable_http
from ctrl_gateway.transports.sse import SseChannelRegistry

logger = logging.getLogger(__name__)


class Gateway:
    """
    One running MCP gateway.

    Args:
        config: Gateway configuration (defaults when omitted)
        capabilities: Device collaborators; unset ones report unavailable
        allowlist_store: Configuration store; built from config when omitted
        clock: Millisecond clock for the rate limiter
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        capabilities: Optional[Capabilities] = None,
        allowlist_store: Optional[AllowlistStore] = None,
        clock: Callable[[], float] = monotonic_ms
    ):
        self.config = config or Config()
        self.allowlist_store = allowlist_store or AllowlistStore(
            path=self.config.allowlist_path,
            enabled=self.config.allowlist_enabled,
            entries=self.config.allowlist_entries,
        )
        self.rate_limiter = TokenBucketRateLimiter(
            capacity=self.config.rate_limit_capacity,
            refill_per_second=self.config.rate_limit_refill_per_second,
            clock=clock,
        )
        self.access_gate = AccessGate(
            self.allowlist_store,
            self.rate_limiter,
            max_body_bytes=self.config.max_body_bytes,
        )
        self.sessions = MCPSessionManager(self.config.supported_protocol_versions)
        self.dispatcher = ToolDispatcher(
            capabilities,
            timeout_seconds=self.config.capability_timeout_seconds,
        )
        self.handler = MCPHandler(self.sessions, self.dispatcher, self.config)
        self.sse_channels = SseChannelRegistry()
        self.app = create_app(self)

    def close_streams(self) -> int:
        """End every open event stream and return how many were open"""
        open_channels = len(self.sse_channels)
        self.sse_channels.close_all()
        return open_channels

    def shutdown(self) -> None:
        """
        Close every event stream and finish pending allowlist writes.

        In-flight requests finish on their own.
        """
        open_channels = self.close_streams()
        self.allowlist_store.close()
        log_event(logger, "gateway_stopped", sse_channels_closed=open_channels, sessions=len(self.sessions))

    def run(self) -> None:
        """Start the gateway and block until it is stopped"""
        log_event(logger, "gateway_starting", host=self.config.host, port=self.config.port)
        server = GatewayServer(self, uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            timeout_graceful_shutdown=int(self.config.shutdown_grace_seconds),
            log_level=self.config.log_level.lower(),
        ))
        server.run()


class GatewayServer(uvicorn.Server):
    """
    uvicorn server that ends event streams as soon as a stop signal arrives,
    before the graceful wait for open connections starts.
    """

    def __init__(self, gateway: Gateway, config: uvicorn.Config):
        super().__init__(config)
        self.gateway = gateway
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def startup(self, sockets=None) -> None:
        self.loop = asyncio.get_running_loop()
        await super().startup(sockets=sockets)

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        if self.loop is not None:
            # Signal handlers interrupt the loop; hand the close back to it
            self.loop.call_soon_threadsafe(self.gateway.close_streams)
        super().handle_exit(sig, frame)


def create_app(gateway: Gateway) -> FastAPI:
    """Build the FastAPI application serving a gateway"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_event(logger, "gateway_started", host=gateway.config.host, port=gateway.config.port)
        yield
        gateway.shutdown()

    app = FastAPI(
        title="CTRL Gateway",
        description="MCP server for device control",
        version=gateway.config.server_version,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> Response:
        # Access rejections carry an HTTP status only, never a JSON-RPC body
        log_event(
            logger, "request_rejected", level="DEBUG",
            method=request.method, path=request.url.path, error=exc.to_dict()
        )
        return Response(status_code=exc.status_code, headers=exc.headers)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "server": gateway.config.server_name,
            "sessions": len(gateway.sessions),
            "sse_channels": len(gateway.sse_channels),
        }

    app.include_router(streamable_http.router)
    app.include_router(sse.router)
    return app
