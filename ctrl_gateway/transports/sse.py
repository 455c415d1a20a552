# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
SSE Transport

Endpoints:
- GET /sse - Open an event stream; the first event names the POST endpoint
- POST /sse/message?sessionId=<id> - Submit a JSON-RPC message whose
  response is pushed onto the matching stream

Example stream:

    event: endpoint
    data: http://192.168.1.20:8787/sse/message?sessionId=5b0c...

    event: message
    data: {"jsonrpc":"2.0","id":1,"result":{...}}

    : ping
"""

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse

from ctrl_gateway.core.dependencies import get_gateway, get_remote_host
from ctrl_gateway.core.logging import log_event
from ctrl_gateway.transports.common import dispatch_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sse"])

_CLOSED = object()


# =============================================================================
# SSE EVENT FORMATTING
# =============================================================================

def format_sse_event(data: Any, event: Optional[str] = None) -> str:
    """
    Format a Server-Sent Event.

    Args:
        data: Event data (JSON-serialized if not a string)
        event: Optional event type

    Returns:
        SSE-formatted string with proper framing
    """
    lines = []
    if event:
        lines.append(f"event: {event}")

    data_str = data if isinstance(data, str) else json.dumps(data)
    # Multi-line data uses one "data:" line per line
    for line in data_str.split("\n"):
        lines.append(f"data: {line}")

    lines.append("")
    lines.append("")
    return "\n".join(lines)


def format_sse_comment(comment: str) -> str:
    """Comment line; ignored by clients, keeps intermediaries from timing out"""
    return f": {comment}\n\n"


# =============================================================================
# CHANNELS
# =============================================================================

class SseChannel:
    """
    Outbound queue of one event stream.

    The POST handler sends, the stream writer receives. Sending to a closed
    channel is refused rather than raising.
    """

    def __init__(self, channel_id: str):
        self.channel_id = channel_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: str) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(message)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake a writer blocked in receive()
        self._queue.put_nowait(_CLOSED)

    def try_receive(self) -> Optional[str]:
        """Next queued message without waiting; None when empty or closed"""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item

    async def receive(self, timeout: float) -> Optional[str]:
        """
        Wait for the next message.

        Returns:
            The message, or None once the channel is closed

        Raises:
            asyncio.TimeoutError: nothing arrived within timeout
        """
        item = await asyncio.wait_for(self._queue.get(), timeout)
        return None if item is _CLOSED else item


class SseChannelRegistry:
    """Live event streams of one gateway, keyed by channel id"""

    def __init__(self):
        self._channels: Dict[str, SseChannel] = {}

    def open(self) -> SseChannel:
        channel = SseChannel(str(uuid.uuid4()))
        self._channels[channel.channel_id] = channel
        return channel

    def get(self, channel_id: Optional[str]) -> Optional[SseChannel]:
        if not channel_id:
            return None
        return self._channels.get(channel_id)

    def remove(self, channel_id: str) -> Optional[SseChannel]:
        channel = self._channels.pop(channel_id, None)
        if channel is not None:
            channel.close()
        return channel

    def close_all(self) -> None:
        for channel in list(self._channels.values()):
            channel.close()
        self._channels.clear()

    def __len__(self) -> int:
        return len(self._channels)


async def sse_event_stream(
    channel: SseChannel,
    registry: SseChannelRegistry,
    endpoint_url: str,
    keepalive_seconds: float = 15.0,
    on_close: Optional[Callable[[str], Any]] = None
) -> AsyncIterator[str]:
    """
    Writer loop of one stream.

    Emits the endpoint event, then drains queued messages and falls back to
    a timed wait that yields a keep-alive comment on timeout. The channel
    is deregistered however the loop ends (close, disconnect, shutdown),
    and on_close is called with the channel id afterwards.
    """
    log_event(logger, "sse_connected", channel_id=channel.channel_id)
    try:
        yield format_sse_event(endpoint_url, event="endpoint")
        while True:
            message = channel.try_receive()
            if message is None and not channel.closed:
                try:
                    message = await channel.receive(keepalive_seconds)
                except asyncio.TimeoutError:
                    yield format_sse_comment("ping")
                    continue
            if message is None:
                break
            yield format_sse_event(message, event="message")
    finally:
        registry.remove(channel.channel_id)
        if on_close is not None:
            on_close(channel.channel_id)
        log_event(logger, "sse_disconnected", channel_id=channel.channel_id)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/sse")
async def sse_subscribe(
    request: Request,
    gateway=Depends(get_gateway),
    remote_host: Optional[str] = Depends(get_remote_host)
) -> StreamingResponse:
    """Open an event stream (allowlist only)"""
    gateway.access_gate.check_allowlist(remote_host)

    channel = gateway.sse_channels.open()
    endpoint_url = f"http://{request.url.netloc}/sse/message?sessionId={channel.channel_id}"

    return StreamingResponse(
        sse_event_stream(
            channel,
            gateway.sse_channels,
            endpoint_url,
            keepalive_seconds=gateway.config.sse_keepalive_seconds,
            # The channel id doubles as the MCP session id over SSE
            on_close=gateway.sessions.close,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/sse/message")
async def sse_message(
    request: Request,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    gateway=Depends(get_gateway),
    remote_host: Optional[str] = Depends(get_remote_host)
) -> Response:
    """
    Accept a JSON-RPC message for an open stream.

    The answer (including error envelopes) is pushed onto the stream; the
    POST itself is always 202 once the channel is found.
    """
    gateway.access_gate.check_allowlist(remote_host)
    gateway.access_gate.check_rate(remote_host)

    if not session_id:
        return PlainTextResponse("Missing sessionId", status_code=400)
    channel = gateway.sse_channels.get(session_id)
    if channel is None:
        return PlainTextResponse("Session not found", status_code=404)

    body = await request.body()
    response = await dispatch_body(
        gateway.handler, body, request.headers, default_session_id=channel.channel_id
    )
    if response.body is not None:
        if not channel.send(json.dumps(response.body)):
            log_event(logger, "sse_send_dropped", level="WARNING", channel_id=channel.channel_id)

    return Response(status_code=202)
