# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
MCP Session Manager
Creates, validates and closes server-side protocol sessions and enforces
the initialize -> notifications/initialized handshake.
"""

import logging
import uuid
from typing import Dict, Optional, Sequence

from ctrl_gateway.core.logging import log_event
from ctrl_gateway.mcp_exceptions import JsonRpcError
from ctrl_gateway.mcp_session import MCPSession

logger = logging.getLogger(__name__)


class MCPSessionManager:
    """
    Owns the session table of one gateway instance.

    Sessions are only touched from the event loop, so each field update is
    atomic with respect to other handlers. Sessions are never expired
    automatically; they live until closed.
    """

    def __init__(self, supported_versions: Sequence[str]):
        if not supported_versions:
            raise ValueError("At least one protocol version must be supported")
        self.supported_versions = tuple(supported_versions)
        self.sessions: Dict[str, MCPSession] = {}

    def negotiate_version(self, requested: str) -> str:
        """Echo a supported version, otherwise fall back to the newest one"""
        if requested in self.supported_versions:
            return requested
        return self.supported_versions[0]

    def initialize(self, requested_version: str, session_id: Optional[str] = None) -> MCPSession:
        """
        Open a new uninitialized session.

        Args:
            requested_version: protocolVersion sent by the client
            session_id: Reuse a transport-allocated id (SSE channel) instead
                of generating a fresh one

        Returns:
            The created session
        """
        negotiated = self.negotiate_version(requested_version)
        session = MCPSession(
            session_id=session_id or str(uuid.uuid4()),
            protocol_version=negotiated
        )
        self.sessions[session.session_id] = session
        log_event(
            logger, "session_created",
            session_id=session.session_id,
            requested_version=requested_version,
            protocol_version=negotiated
        )
        return session

    def get(self, session_id: Optional[str]) -> Optional[MCPSession]:
        if not session_id:
            return None
        return self.sessions.get(session_id)

    def require_session(self, session_id: Optional[str], protocol_version: Optional[str] = None) -> MCPSession:
        """
        Look up an existing session in any state.

        Raises:
            JsonRpcError: invalid request when the id is missing or the
                protocol version header disagrees, session-not-found when
                the id is unknown
        """
        if not session_id:
            raise JsonRpcError.invalid_request("Missing Mcp-Session-Id header")

        session = self.sessions.get(session_id)
        if session is None:
            raise JsonRpcError.session_not_found()

        # The version header is optional for clients that don't send it
        if protocol_version is not None and protocol_version != session.protocol_version:
            raise JsonRpcError.invalid_request(f"Unsupported protocol version: {protocol_version}")
        return session

    def require_initialized(self, session_id: Optional[str], protocol_version: Optional[str] = None) -> MCPSession:
        session = self.require_session(session_id, protocol_version)
        if not session.initialized:
            raise JsonRpcError.invalid_request("Server not initialized")
        return session

    def mark_initialized(self, session_id: Optional[str], protocol_version: Optional[str] = None) -> MCPSession:
        """Handle notifications/initialized"""
        session = self.require_session(session_id, protocol_version)
        session.initialized = True
        session.touch()
        log_event(logger, "session_initialized", session_id=session.session_id)
        return session

    def close(self, session_id: Optional[str]) -> bool:
        """
        Terminate a session.

        Returns:
            True if the session existed, False when it was already gone
        """
        if not session_id:
            return False
        removed = self.sessions.pop(session_id, None)
        if removed is None:
            return False
        log_event(logger, "session_closed", session_id=session_id)
        return True

    def __len__(self) -> int:
        return len(self.sessions)
