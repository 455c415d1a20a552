# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
JSON-RPC 2.0 Envelope Codec for MCP Protocol

Parsing and validation of inbound envelopes, plus builders for the
result/error envelopes the gateway sends and the requests a client sends.
"""

import json
from typing import Dict, Any, Optional, Union

from ctrl_gateway.mcp_exceptions import JsonRpcError


JSONRPC_VERSION = "2.0"


# =============================================================================
# PARSING
# =============================================================================

def parse_envelope(body: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse a request body into a JSON-RPC envelope.

    Raises:
        JsonRpcError: parse error when the body is not JSON (including
            nesting too deep to decode and integers past the conversion
            limit), invalid request when it is JSON but not an object
    """
    try:
        message = json.loads(body)
    except (ValueError, RecursionError, TypeError):
        raise JsonRpcError.parse_error()

    if not isinstance(message, dict):
        raise JsonRpcError.invalid_request("Body must be a JSON object")
    return message


def is_version_2(message: Dict[str, Any]) -> bool:
    """True when the envelope declares jsonrpc "2.0" """
    return message.get("jsonrpc") == JSONRPC_VERSION


def has_method(message: Dict[str, Any]) -> bool:
    """True when the envelope carries a string method"""
    return isinstance(message.get("method"), str)


def method_of(message: Dict[str, Any]) -> str:
    """Return the method name or raise invalid request"""
    if not has_method(message):
        raise JsonRpcError.invalid_request("Missing method")
    return message["method"]


def id_of(message: Dict[str, Any]) -> Optional[Any]:
    """
    Return the request id, or None for notifications.

    An absent id and an explicit JSON null are both treated as a
    notification.
    """
    return message.get("id")


def is_notification(message: Dict[str, Any]) -> bool:
    return id_of(message) is None


def is_response_shaped(message: Dict[str, Any]) -> bool:
    """
    True for a stray response sent by a client.

    Such messages are accepted and discarded without further processing.
    """
    has_result = "result" in message or "error" in message
    return "id" in message and has_result and "method" not in message


# =============================================================================
# SERVER ENVELOPES
# =============================================================================

def build_result(request_id: Any, result: Any) -> Dict:
    """Build JSON-RPC result envelope"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "result": result
    }


def build_error(request_id: Optional[Any], code: int, message: str, data: Optional[Any] = None) -> Dict:
    """Build JSON-RPC error envelope"""
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def build_error_from(request_id: Optional[Any], exc: JsonRpcError) -> Dict:
    """Build JSON-RPC error envelope from a raised JsonRpcError"""
    return build_error(request_id, exc.code, exc.message, exc.data)


# =============================================================================
# CLIENT ENVELOPES
# =============================================================================

def build_initialize_request(request_id: int, protocol_version: str, client_info: Dict[str, Any]) -> Dict:
    """Build JSON-RPC initialize request"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": protocol_version,
            "capabilities": {},
            "clientInfo": client_info
        }
    }


def build_initialized_notification() -> Dict:
    """Build JSON-RPC initialized notification"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": "notifications/initialized"
    }


def build_ping_request(request_id: int) -> Dict:
    """Build JSON-RPC ping request"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": "ping"
    }


def build_list_tools_request(request_id: int) -> Dict:
    """Build JSON-RPC tools/list request"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": "tools/list"
    }


def build_call_tool_request(request_id: int, tool_name: str, arguments: Dict) -> Dict:
    """Build JSON-RPC tools/call request"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": "tools/call",
        "params": {
            "name": tool_name,
            "arguments": arguments
        }
    }


def build_cancel_notification(request_id: int, reason: str = "Request timed out") -> Dict:
    """Build JSON-RPC cancellation notification"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": "notifications/cancelled",
        "params": {
            "requestId": request_id,
            "reason": reason
        }
    }
