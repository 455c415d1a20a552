# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Tests for the SSE transport: framing, channels, the writer loop and /sse/message"""

import asyncio
import json
import signal

import pytest
import uvicorn
import yaml
from fastapi import Request

from ctrl_gateway.core.config import Config
from ctrl_gateway.core.errors import ForbiddenError
from ctrl_gateway.mcp_exceptions import METHOD_NOT_FOUND, PARSE_ERROR
from ctrl_gateway.server import Gateway, GatewayServer
from ctrl_gateway.transports.sse import (
    SseChannel,
    SseChannelRegistry,
    format_sse_comment,
    format_sse_event,
    sse_event_stream,
    sse_subscribe,
)
from tests.conftest import BLOCKED_IP, make_client, rpc


def make_request(host: str = "192.168.1.20:8787", client_ip: str = "10.0.0.5") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "path": "/sse",
        "raw_path": b"/sse",
        "query_string": b"",
        "headers": [(b"host", host.encode())],
        "client": (client_ip, 51234),
        "server": ("192.168.1.20", 8787),
    }
    return Request(scope)


def parse_event(chunk: str):
    """Split one SSE frame into (event, data)"""
    event = None
    data = []
    for line in chunk.strip("\n").split("\n"):
        if line.startswith("event: "):
            event = line[len("event: "):]
        elif line.startswith("data: "):
            data.append(line[len("data: "):])
    return event, "\n".join(data)


# ============================================================================
# Framing
# ============================================================================

def test_format_sse_event():
    assert format_sse_event("hello", event="endpoint") == "event: endpoint\ndata: hello\n\n"
    assert format_sse_event({"a": 1}) == 'data: {"a": 1}\n\n'


def test_format_multiline_data():
    assert format_sse_event("one\ntwo", event="message") == "event: message\ndata: one\ndata: two\n\n"


def test_format_sse_comment():
    assert format_sse_comment("ping") == ": ping\n\n"


# ============================================================================
# Channels
# ============================================================================

async def test_channel_send_and_receive():
    channel = SseChannel("c1")
    assert channel.try_receive() is None

    assert channel.send("first") is True
    assert channel.send("second") is True
    assert channel.try_receive() == "first"
    assert await channel.receive(0.1) == "second"


async def test_channel_receive_times_out():
    channel = SseChannel("c1")
    with pytest.raises(asyncio.TimeoutError):
        await channel.receive(0.01)


async def test_closed_channel_refuses_sends_and_wakes_receiver():
    channel = SseChannel("c1")
    waiter = asyncio.ensure_future(channel.receive(1.0))
    await asyncio.sleep(0)

    channel.close()
    channel.close()

    assert await waiter is None
    assert channel.closed is True
    assert channel.send("late") is False


async def test_registry_lifecycle():
    registry = SseChannelRegistry()
    first = registry.open()
    second = registry.open()

    assert first.channel_id != second.channel_id
    assert registry.get(first.channel_id) is first
    assert registry.get(None) is None
    assert registry.get("unknown") is None
    assert len(registry) == 2

    assert registry.remove(first.channel_id) is first
    assert first.closed is True
    assert registry.remove(first.channel_id) is None

    registry.close_all()
    assert second.closed is True
    assert len(registry) == 0


# ============================================================================
# Writer Loop
# ============================================================================

async def test_event_stream_lifecycle():
    """Test endpoint event, message, keep-alive, then cleanup on close"""
    registry = SseChannelRegistry()
    channel = registry.open()
    closed_ids = []
    stream = sse_event_stream(
        channel, registry, "http://h/sse/message?sessionId=x",
        keepalive_seconds=0.01, on_close=closed_ids.append,
    )

    assert await stream.__anext__() == "event: endpoint\ndata: http://h/sse/message?sessionId=x\n\n"

    channel.send('{"jsonrpc":"2.0","id":1,"result":{}}')
    event, data = parse_event(await stream.__anext__())
    assert event == "message"
    assert json.loads(data)["id"] == 1

    assert await stream.__anext__() == ": ping\n\n"

    channel.close()
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()

    assert registry.get(channel.channel_id) is None
    assert closed_ids == [channel.channel_id]


async def test_event_stream_drains_before_closing():
    registry = SseChannelRegistry()
    channel = registry.open()
    stream = sse_event_stream(channel, registry, "http://h/e", keepalive_seconds=1.0)
    await stream.__anext__()

    channel.send("a")
    channel.send("b")
    channel.close()

    frames = [frame async for frame in stream]
    assert [parse_event(f)[1] for f in frames] == ["a", "b"]


async def test_event_stream_cleanup_on_disconnect():
    """Test a client disconnect (generator closed early) still deregisters"""
    registry = SseChannelRegistry()
    channel = registry.open()
    closed_ids = []
    stream = sse_event_stream(channel, registry, "http://h/e", on_close=closed_ids.append)
    await stream.__anext__()

    await stream.aclose()

    assert len(registry) == 0
    assert channel.closed is True
    assert closed_ids == [channel.channel_id]


# ============================================================================
# GET /sse
# ============================================================================

async def test_subscribe_announces_message_endpoint(gateway):
    response = await sse_subscribe(make_request(), gateway=gateway, remote_host="10.0.0.5")

    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == "no-cache"
    assert len(gateway.sse_channels) == 1

    event, data = parse_event(await response.body_iterator.__anext__())
    channel_id = data.rsplit("=", 1)[1]
    assert event == "endpoint"
    assert data == f"http://192.168.1.20:8787/sse/message?sessionId={channel_id}"
    assert gateway.sse_channels.get(channel_id) is not None

    await response.body_iterator.aclose()
    assert len(gateway.sse_channels) == 0


async def test_subscribe_blocked_caller(gateway):
    with pytest.raises(ForbiddenError):
        await sse_subscribe(make_request(client_ip=BLOCKED_IP), gateway=gateway, remote_host=BLOCKED_IP)
    assert len(gateway.sse_channels) == 0


async def test_stream_close_ends_mcp_session(gateway):
    response = await sse_subscribe(make_request(), gateway=gateway, remote_host="10.0.0.5")
    _, data = parse_event(await response.body_iterator.__anext__())
    channel_id = data.rsplit("=", 1)[1]
    gateway.sessions.initialize("2025-11-25", session_id=channel_id)

    await response.body_iterator.aclose()
    assert gateway.sessions.get(channel_id) is None


# ============================================================================
# POST /sse/message
# ============================================================================

async def post_message(client, channel_id, message):
    return await client.post(f"/sse/message?sessionId={channel_id}", json=message)


def next_envelope(channel):
    message = channel.try_receive()
    assert message is not None
    return json.loads(message)


async def test_message_flow_over_channel(gateway, client, input_injector):
    """Test the handshake and a tool call answered on the stream"""
    channel = gateway.sse_channels.open()

    response = await post_message(client, channel.channel_id, rpc("initialize", 1, {"protocolVersion": "2024-11-05"}))
    assert response.status_code == 202
    assert response.content == b""
    envelope = next_envelope(channel)
    assert envelope["result"]["protocolVersion"] == "2024-11-05"
    assert gateway.sessions.get(channel.channel_id) is not None

    response = await post_message(client, channel.channel_id, rpc("notifications/initialized", None))
    assert response.status_code == 202
    assert channel.try_receive() is None

    response = await post_message(
        client, channel.channel_id,
        rpc("tools/call", 2, {"name": "input.key", "arguments": {"key": "back"}}),
    )
    assert response.status_code == 202
    envelope = next_envelope(channel)
    assert envelope["id"] == 2
    assert envelope["result"]["content"][0]["text"] == "Pressed back key"
    assert input_injector.calls == [("press_key", "back")]


async def test_errors_are_pushed_to_the_stream(gateway, client):
    channel = gateway.sse_channels.open()

    response = await client.post(f"/sse/message?sessionId={channel.channel_id}", content=b"{bad")
    assert response.status_code == 202
    assert next_envelope(channel)["error"]["code"] == PARSE_ERROR

    response = await post_message(client, channel.channel_id, rpc("bogus/method", 3))
    assert response.status_code == 202
    envelope = next_envelope(channel)
    assert envelope["id"] == 3
    assert envelope["error"]["code"] == METHOD_NOT_FOUND


async def test_undecodable_json_is_pushed_to_the_stream(gateway, client):
    channel = gateway.sse_channels.open()

    for body in (b"[" * 200000, b'{"jsonrpc":"2.0","id":1' + b"0" * 5000 + b',"method":"ping"}'):
        response = await client.post(f"/sse/message?sessionId={channel.channel_id}", content=body)
        assert response.status_code == 202
        envelope = next_envelope(channel)
        assert envelope["error"]["code"] == PARSE_ERROR
        assert envelope["id"] is None


async def test_missing_session_id(client):
    response = await client.post("/sse/message", json=rpc("ping", 1))
    assert response.status_code == 400


async def test_unknown_channel(client):
    response = await post_message(client, "not-a-channel", rpc("ping", 1))
    assert response.status_code == 404


async def test_closed_channel_is_not_found(gateway, client):
    channel = gateway.sse_channels.open()
    gateway.sse_channels.remove(channel.channel_id)
    response = await post_message(client, channel.channel_id, rpc("ping", 1))
    assert response.status_code == 404


async def test_message_from_blocked_caller(gateway):
    channel = gateway.sse_channels.open()
    async with make_client(gateway, BLOCKED_IP) as client:
        response = await post_message(client, channel.channel_id, rpc("initialize", 1, {"protocolVersion": "2025-11-25"}))
    assert response.status_code == 403
    assert channel.try_receive() is None


def test_shutdown_closes_all_channels(gateway):
    first = gateway.sse_channels.open()
    second = gateway.sse_channels.open()

    gateway.shutdown()

    assert first.closed and second.closed
    assert len(gateway.sse_channels) == 0


async def test_stop_signal_ends_streams_before_graceful_wait(gateway):
    """Test uvicorn's exit signal closes open streams right away"""
    server = GatewayServer(gateway, uvicorn.Config(gateway.app))
    server.loop = asyncio.get_running_loop()
    response = await sse_subscribe(make_request(), gateway=gateway, remote_host="10.0.0.5")
    stream = response.body_iterator
    await stream.__anext__()

    server.handle_exit(signal.SIGTERM, None)
    await asyncio.sleep(0)

    assert server.should_exit is True
    assert len(gateway.sse_channels) == 0
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


def test_stop_signal_before_startup_only_flags_exit(gateway):
    server = GatewayServer(gateway, uvicorn.Config(gateway.app))
    channel = gateway.sse_channels.open()

    server.handle_exit(signal.SIGINT, None)

    assert server.should_exit is True
    assert channel.closed is False


def test_shutdown_finishes_allowlist_writes(capabilities, clock, tmp_path):
    path = tmp_path / "allowlist.yaml"
    gateway = Gateway(Config(allowlist_path=str(path)), capabilities=capabilities, clock=clock)
    gateway.allowlist_store.add_entry("10.0.0.0/8")

    gateway.shutdown()

    assert yaml.safe_load(path.read_text())["entries"] == ["10.0.0.0/8"]
