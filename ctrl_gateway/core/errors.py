# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for the CTRL gateway access layer.

All exceptions inherit from GatewayError. These errors reject a request
before any JSON-RPC processing, so transports answer them with an HTTP
status and no JSON-RPC body.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for all gateway transport/access errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict] = None,
        headers: Optional[dict] = None
    ):
        """
        Initialize gateway error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            details: Additional error details
            headers: Extra HTTP headers for the rejection response
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for logging."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details
        }


class ForbiddenError(GatewayError):
    """Caller rejected by the allowlist or origin check."""

    def __init__(self, message: str = "Forbidden", remote_ip: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize forbidden error.

        Args:
            message: Error message
            remote_ip: Address of the rejected caller
            details: Additional error details
        """
        super().__init__(message, status_code=403, details=details)
        self.remote_ip = remote_ip


class TooManyRequestsError(GatewayError):
    """Caller exhausted its rate-limit bucket."""

    def __init__(self, key: str, details: Optional[dict] = None):
        super().__init__(f"Rate limit exceeded for {key}", status_code=429, details=details)
        self.key = key


class NotAcceptableError(GatewayError):
    """Accept header allows neither JSON nor an event stream."""

    def __init__(self, accept: str = ""):
        super().__init__(f"Not acceptable: {accept}", status_code=406)


class UnsupportedMediaTypeError(GatewayError):
    """Request body is not JSON."""

    def __init__(self, content_type: str = ""):
        super().__init__(f"Unsupported media type: {content_type}", status_code=415)


class PayloadTooLargeError(GatewayError):
    """Declared or actual body exceeds the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Payload too large: {size} bytes (limit {limit})",
            status_code=413,
            details={"size": size, "limit": limit}
        )


class MethodNotAllowedError(GatewayError):
    """HTTP verb not served on this endpoint."""

    def __init__(self, allowed: str):
        super().__init__("Method not allowed", status_code=405, headers={"Allow": allowed})
