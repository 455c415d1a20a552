# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
MCP Protocol Handler

Method routing shared by the Streamable HTTP and SSE transports. The
handler works on parsed envelopes and plain header mappings; transports
own the HTTP details and map raised JsonRpcErrors to error envelopes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from ctrl_gateway.core.config import Config
from ctrl_gateway.core.logging import log_event
from ctrl_gateway.mcp_exceptions import JsonRpcError
from ctrl_gateway.mcp_jsonrpc import (
    build_result,
    id_of,
    is_response_shaped,
    is_version_2,
    method_of,
)
from ctrl_gateway.mcp_session_manager import MCPSessionManager
from ctrl_gateway.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
PROTOCOL_VERSION_HEADER = "Mcp-Protocol-Version"

INSTRUCTIONS = (
    "This server controls the phone. Use tools/list then tools/call. "
    "Coordinates are in screen pixels relative to the captured screenshot."
)


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup over any mapping"""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass
class MCPResponse:
    """Outcome of one handled message; body is None for 202 answers"""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


class MCPHandler:
    """
    Routes JSON-RPC methods to the session manager and tool dispatcher.

    Args:
        sessions: Session table of the owning gateway
        dispatcher: Tool dispatcher of the owning gateway
        config: Gateway configuration (server info)
    """

    def __init__(self, sessions: MCPSessionManager, dispatcher: ToolDispatcher, config: Config):
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.config = config

    async def handle(
        self,
        message: Dict[str, Any],
        headers: Mapping[str, str],
        default_session_id: Optional[str] = None
    ) -> MCPResponse:
        """
        Handle one parsed JSON-RPC message.

        Args:
            message: Parsed envelope
            headers: Request headers
            default_session_id: Session id to use when the client sends no
                session header (the SSE channel id)

        Returns:
            202 for stray responses and notifications, 200 with a result
            envelope for requests

        Raises:
            JsonRpcError: for malformed or semantically invalid requests
        """
        if not is_version_2(message):
            raise JsonRpcError.invalid_request("Expected jsonrpc=2.0")

        if is_response_shaped(message):
            return MCPResponse(status=202)

        method = method_of(message)
        request_id = id_of(message)
        session_id = get_header(headers, SESSION_HEADER) or default_session_id
        protocol_version = get_header(headers, PROTOCOL_VERSION_HEADER)

        if request_id is None:
            self._handle_notification(method, message, session_id, protocol_version)
            return MCPResponse(status=202)

        result, extra_headers = await self._handle_request(
            method, message, session_id, protocol_version, default_session_id
        )
        return MCPResponse(status=200, headers=extra_headers, body=build_result(request_id, result))

    def close_session(self, headers: Mapping[str, str]) -> bool:
        return self.sessions.close(get_header(headers, SESSION_HEADER))

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def _handle_notification(
        self,
        method: str,
        message: Dict[str, Any],
        session_id: Optional[str],
        protocol_version: Optional[str]
    ) -> None:
        """Run notification side effects; a notification never gets an answer"""
        try:
            if method == "notifications/initialized":
                self.sessions.mark_initialized(session_id, protocol_version)
            elif method == "notifications/cancelled":
                params = message.get("params") or {}
                log_event(
                    logger, "request_cancelled",
                    session_id=session_id,
                    request_id=params.get("requestId") if isinstance(params, dict) else None,
                    reason=params.get("reason") if isinstance(params, dict) else None
                )
            else:
                logger.debug(f"Ignoring notification {method}")
        except JsonRpcError as e:
            log_event(
                logger, "notification_rejected", level="WARNING",
                method=method, session_id=session_id, code=e.code, error=e.message
            )

    # =========================================================================
    # REQUESTS
    # =========================================================================

    async def _handle_request(
        self,
        method: str,
        message: Dict[str, Any],
        session_id: Optional[str],
        protocol_version: Optional[str],
        default_session_id: Optional[str]
    ) -> Tuple[Any, Dict[str, str]]:
        if method == "initialize":
            return self._handle_initialize(message, default_session_id)

        if method == "ping":
            session = self.sessions.require_session(session_id, protocol_version)
            session.touch()
            return {}, {}

        if method == "tools/list":
            session = self.sessions.require_initialized(session_id, protocol_version)
            session.touch()
            return self.dispatcher.list_tools(), {}

        if method == "tools/call":
            session = self.sessions.require_initialized(session_id, protocol_version)
            session.touch()
            return await self.dispatcher.call_tool(message.get("params")), {}

        raise JsonRpcError.method_not_found(method)

    def _handle_initialize(
        self,
        message: Dict[str, Any],
        default_session_id: Optional[str]
    ) -> Tuple[Dict[str, Any], Dict[str, str]]:
        params = message.get("params")
        if not isinstance(params, dict):
            raise JsonRpcError.invalid_params("Missing params")
        requested = params.get("protocolVersion")
        if not isinstance(requested, str) or not requested:
            raise JsonRpcError.invalid_params("Missing params.protocolVersion")

        session = self.sessions.initialize(requested, session_id=default_session_id)
        result = {
            "protocolVersion": session.protocol_version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": self.config.server_info,
            "instructions": INSTRUCTIONS,
        }
        return result, {SESSION_HEADER: session.session_id}
