# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
MCP Protocol Exception Classes
"""

from typing import Any, Optional


PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_NOT_FOUND = -32001


class JsonRpcError(Exception):
    """Raised when a JSON-RPC call is malformed or semantically invalid"""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    @classmethod
    def parse_error(cls, message: str = "Parse error") -> "JsonRpcError":
        return cls(PARSE_ERROR, message)

    @classmethod
    def invalid_request(cls, message: str = "Invalid request") -> "JsonRpcError":
        return cls(INVALID_REQUEST, message)

    @classmethod
    def method_not_found(cls, method: str) -> "JsonRpcError":
        return cls(METHOD_NOT_FOUND, f"Method not found: {method}")

    @classmethod
    def invalid_params(cls, message: str) -> "JsonRpcError":
        return cls(INVALID_PARAMS, message)

    @classmethod
    def internal_error(cls, message: str = "Internal error") -> "JsonRpcError":
        return cls(INTERNAL_ERROR, message)

    @classmethod
    def session_not_found(cls, message: str = "Session not found") -> "JsonRpcError":
        return cls(SESSION_NOT_FOUND, message)
