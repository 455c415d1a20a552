# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Unit tests for MCPHandler routing and dispatch_body status mapping"""

import json
import logging

import pytest

from ctrl_gateway.core.config import Config
from ctrl_gateway.mcp_exceptions import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SESSION_NOT_FOUND,
    JsonRpcError,
)
from ctrl_gateway.mcp_handler import (
    INSTRUCTIONS,
    SESSION_HEADER,
    MCPHandler,
    get_header,
)
from ctrl_gateway.mcp_session_manager import MCPSessionManager
from ctrl_gateway.tools.dispatcher import ToolDispatcher
from ctrl_gateway.transports.common import dispatch_body
from tests.conftest import rpc


@pytest.fixture
def handler(capabilities):
    config = Config()
    sessions = MCPSessionManager(config.supported_protocol_versions)
    return MCPHandler(sessions, ToolDispatcher(capabilities), config)


async def initialize(handler, version="2025-11-25", default_session_id=None):
    response = await handler.handle(
        rpc("initialize", 1, {"protocolVersion": version}), {}, default_session_id=default_session_id
    )
    return response.headers[SESSION_HEADER]


async def ready_session(handler):
    session_id = await initialize(handler)
    await handler.handle(rpc("notifications/initialized", None), {SESSION_HEADER: session_id})
    return session_id


def test_get_header_is_case_insensitive():
    headers = {"mcp-session-id": "abc", "Accept": "*/*"}
    assert get_header(headers, "Mcp-Session-Id") == "abc"
    assert get_header(headers, "accept") == "*/*"
    assert get_header(headers, "Origin") is None


# ============================================================================
# Initialize
# ============================================================================

async def test_initialize_result(handler):
    response = await handler.handle(rpc("initialize", 7, {"protocolVersion": "2025-03-26"}), {})

    assert response.status == 200
    assert response.body["id"] == 7
    result = response.body["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert result["serverInfo"]["name"] == "ctrl-phone"
    assert result["instructions"] == INSTRUCTIONS
    assert handler.sessions.get(response.headers[SESSION_HEADER]) is not None


async def test_initialize_unknown_version_negotiates_newest(handler):
    response = await handler.handle(rpc("initialize", 1, {"protocolVersion": "1999-01-01"}), {})
    assert response.body["result"]["protocolVersion"] == "2025-11-25"


@pytest.mark.parametrize("params,message", [
    (None, "Missing params"),
    ({}, "Missing params.protocolVersion"),
    ({"protocolVersion": 2025}, "Missing params.protocolVersion"),
])
async def test_initialize_missing_params(handler, params, message):
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle(rpc("initialize", 1, params), {})
    assert exc_info.value.code == INVALID_PARAMS
    assert exc_info.value.message == message
    assert len(handler.sessions) == 0


async def test_initialize_uses_transport_session_id(handler):
    session_id = await initialize(handler, default_session_id="channel-9")
    assert session_id == "channel-9"


# ============================================================================
# Envelope Shape
# ============================================================================

async def test_wrong_version_is_invalid_request(handler):
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle({"jsonrpc": "1.0", "id": 1, "method": "ping"}, {})
    assert exc_info.value.code == INVALID_REQUEST


async def test_missing_method_is_invalid_request(handler):
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle({"jsonrpc": "2.0", "id": 1}, {})
    assert exc_info.value.code == INVALID_REQUEST


async def test_stray_response_is_accepted_and_discarded(handler):
    response = await handler.handle({"jsonrpc": "2.0", "id": 3, "result": {}}, {})
    assert response.status == 202
    assert response.body is None
    assert len(handler.sessions) == 0


async def test_unknown_method(handler):
    session_id = await ready_session(handler)
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle(rpc("resources/list", 2), {SESSION_HEADER: session_id})
    assert exc_info.value.code == METHOD_NOT_FOUND
    assert exc_info.value.message == "Method not found: resources/list"


# ============================================================================
# Notifications
# ============================================================================

async def test_initialized_notification_marks_session(handler):
    session_id = await initialize(handler)
    response = await handler.handle(rpc("notifications/initialized", None), {SESSION_HEADER: session_id})

    assert response.status == 202
    assert response.body is None
    assert handler.sessions.get(session_id).initialized is True


async def test_null_id_is_a_notification(handler):
    session_id = await initialize(handler)
    message = {"jsonrpc": "2.0", "id": None, "method": "notifications/initialized"}
    response = await handler.handle(message, {SESSION_HEADER: session_id})
    assert response.status == 202
    assert handler.sessions.get(session_id).initialized is True


async def test_rejected_notification_still_answers_202(handler, caplog):
    """Test a notification for an unknown session is logged, never answered"""
    with caplog.at_level(logging.WARNING, logger="ctrl_gateway.mcp_handler"):
        response = await handler.handle(
            rpc("notifications/initialized", None), {SESSION_HEADER: "missing"}
        )

    assert response.status == 202
    assert response.body is None
    assert any(r.getMessage() == "notification_rejected" for r in caplog.records)


async def test_cancelled_notification_is_logged(handler, caplog):
    session_id = await ready_session(handler)
    message = rpc("notifications/cancelled", None, {"requestId": 4, "reason": "user aborted"})

    with caplog.at_level(logging.INFO, logger="ctrl_gateway.mcp_handler"):
        response = await handler.handle(message, {SESSION_HEADER: session_id})

    assert response.status == 202
    assert any(r.getMessage() == "request_cancelled" for r in caplog.records)


async def test_unknown_notification_is_ignored(handler):
    response = await handler.handle(rpc("notifications/progress", None), {})
    assert response.status == 202


# ============================================================================
# Session Gating
# ============================================================================

async def test_tools_list_before_initialized(handler):
    session_id = await initialize(handler)
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle(rpc("tools/list", 2), {SESSION_HEADER: session_id})
    assert exc_info.value.code == INVALID_REQUEST
    assert exc_info.value.message == "Server not initialized"


async def test_ping_only_needs_a_session(handler):
    session_id = await initialize(handler)
    response = await handler.handle(rpc("ping", 2), {SESSION_HEADER: session_id})
    assert response.body == {"jsonrpc": "2.0", "id": 2, "result": {}}


async def test_requests_without_session(handler):
    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle(rpc("ping", 2), {})
    assert exc_info.value.code == INVALID_REQUEST

    with pytest.raises(JsonRpcError) as exc_info:
        await handler.handle(rpc("tools/list", 2), {SESSION_HEADER: "unknown"})
    assert exc_info.value.code == SESSION_NOT_FOUND


async def test_tools_list_and_call(handler, input_injector):
    session_id = await ready_session(handler)
    headers = {SESSION_HEADER: session_id, "Mcp-Protocol-Version": "2025-11-25"}

    response = await handler.handle(rpc("tools/list", 2), headers)
    assert len(response.body["result"]["tools"]) == 15

    response = await handler.handle(
        rpc("tools/call", 3, {"name": "input.tap", "arguments": {"x": 5, "y": 6}}), headers
    )
    assert response.status == 200
    assert response.body["result"]["isError"] is False
    assert input_injector.calls == [("tap", 5, 6)]


async def test_default_session_id_routes_sse_requests(handler):
    """Test requests without a session header fall back to the channel id"""
    await initialize(handler, default_session_id="channel-1")
    await handler.handle(rpc("notifications/initialized", None), {}, default_session_id="channel-1")

    response = await handler.handle(rpc("tools/list", 2), {}, default_session_id="channel-1")
    assert response.status == 200


def test_close_session(handler):
    session = handler.sessions.initialize("2025-11-25")
    assert handler.close_session({"mcp-session-id": session.session_id}) is True
    assert handler.close_session({"mcp-session-id": session.session_id}) is False
    assert handler.close_session({}) is False


# ============================================================================
# dispatch_body
# ============================================================================

async def test_dispatch_parse_error(handler):
    response = await dispatch_body(handler, b"{not json", {})
    assert response.status == 400
    assert response.body["id"] is None
    assert response.body["error"]["code"] == PARSE_ERROR


async def test_dispatch_non_object_body(handler):
    response = await dispatch_body(handler, "[1, 2]", {})
    assert response.status == 400
    assert response.body["error"]["code"] == INVALID_REQUEST


async def test_dispatch_echoes_request_id_on_error(handler):
    response = await dispatch_body(handler, json.dumps(rpc("bogus", "abc")), {SESSION_HEADER: "x"})
    assert response.status == 400
    assert response.body["id"] == "abc"
    assert response.body["error"]["code"] == METHOD_NOT_FOUND


async def test_dispatch_unknown_session_is_404(handler):
    response = await dispatch_body(handler, json.dumps(rpc("ping", 1)), {SESSION_HEADER: "gone"})
    assert response.status == 404
    assert response.body["error"] == {"code": SESSION_NOT_FOUND, "message": "Session not found"}


async def test_dispatch_unexpected_failure_is_500(handler, capabilities):
    session_id = await ready_session(handler)

    def explode(x, y):
        raise RuntimeError("boom")

    capabilities.input.tap = explode
    body = json.dumps(rpc("tools/call", 5, {"name": "input.tap", "arguments": {"x": 1, "y": 1}}))
    response = await dispatch_body(handler, body, {SESSION_HEADER: session_id})

    assert response.status == 500
    assert response.body == {
        "jsonrpc": "2.0",
        "id": 5,
        "error": {"code": INTERNAL_ERROR, "message": "Internal error"},
    }
