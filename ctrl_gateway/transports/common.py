# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Body-to-envelope pipeline shared by both transports.
"""

import logging
from typing import Mapping, Optional, Union

from ctrl_gateway.mcp_exceptions import INTERNAL_ERROR, SESSION_NOT_FOUND, JsonRpcError
from ctrl_gateway.mcp_handler import MCPHandler, MCPResponse
from ctrl_gateway.mcp_jsonrpc import build_error, build_error_from, parse_envelope

logger = logging.getLogger(__name__)


async def dispatch_body(
    handler: MCPHandler,
    body: Union[str, bytes],
    headers: Mapping[str, str],
    default_session_id: Optional[str] = None
) -> MCPResponse:
    """
    Parse a raw body and run it through the handler.

    Protocol errors come back as error envelopes with the HTTP status the
    Streamable HTTP transport answers them with: 404 for an unknown
    session, 400 for every other protocol error, 500 for unexpected
    failures.
    """
    try:
        message = parse_envelope(body)
    except JsonRpcError as e:
        return MCPResponse(status=400, body=build_error_from(None, e))

    request_id = message.get("id")
    try:
        return await handler.handle(message, headers, default_session_id=default_session_id)
    except JsonRpcError as e:
        status = 404 if e.code == SESSION_NOT_FOUND else 400
        return MCPResponse(status=status, body=build_error_from(request_id, e))
    except Exception:
        logger.exception(f"Unhandled error while dispatching {message.get('method')}")
        return MCPResponse(status=500, body=build_error(request_id, INTERNAL_ERROR, "Internal error"))
