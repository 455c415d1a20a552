# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Streamable HTTP Transport

Endpoints:
- POST /mcp - One JSON-RPC message per request, answered in the body
- GET /mcp - Not served (405)
- DELETE /mcp - Terminate the session named by Mcp-Session-Id
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ctrl_gateway.core.dependencies import get_gateway, get_remote_host
from ctrl_gateway.core.errors import MethodNotAllowedError
from ctrl_gateway.transports.common import dispatch_body

router = APIRouter(tags=["mcp"])

ALLOWED_METHODS = "POST, DELETE"


@router.post("/mcp")
async def mcp_post(
    request: Request,
    gateway=Depends(get_gateway),
    remote_host: Optional[str] = Depends(get_remote_host)
) -> Response:
    """
    Handle one JSON-RPC message.

    Access gate order: allowlist, origin, rate limit, transport shape.
    Rejections surface as GatewayError and carry no JSON-RPC body.
    """
    gate = gateway.access_gate
    gate.check_allowlist(remote_host, record_blocked=True)
    gate.check_origin(request.headers.get("origin"), remote_host)
    gate.check_rate(remote_host)
    gate.check_transport_shape(
        request.headers.get("accept"),
        request.headers.get("content-type"),
        request.headers.get("content-length"),
    )

    body = await request.body()
    gate.check_body_size(body)

    response = await dispatch_body(gateway.handler, body, request.headers)
    if response.status == 202 or response.body is None:
        return Response(status_code=202, headers=response.headers)
    return JSONResponse(content=response.body, status_code=response.status, headers=response.headers)


@router.get("/mcp")
async def mcp_get() -> Response:
    """Server-initiated streams are served on /sse, not here"""
    raise MethodNotAllowedError(ALLOWED_METHODS)


@router.delete("/mcp")
async def mcp_delete(
    request: Request,
    gateway=Depends(get_gateway),
    remote_host: Optional[str] = Depends(get_remote_host)
) -> Response:
    """Terminate a session: 200 when it existed, 404 otherwise"""
    gateway.access_gate.check_allowlist(remote_host)
    closed = gateway.handler.close_session(request.headers)
    return Response(status_code=200 if closed else 404)
