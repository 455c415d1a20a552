# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Access Gate

Per-request checks applied before any JSON-RPC processing. Each check
raises a GatewayError subclass on failure, so the caller can run them in
order and stop at the first rejection.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from ctrl_gateway.core.errors import (
    ForbiddenError,
    NotAcceptableError,
    PayloadTooLargeError,
    TooManyRequestsError,
    UnsupportedMediaTypeError,
)
from ctrl_gateway.core.logging import log_event
from ctrl_gateway.security.allowlist import (
    AllowlistConfig,
    AllowlistSnapshot,
    ipv4_to_string,
    parse_remote_ipv4,
)
from ctrl_gateway.security.allowlist_store import AllowlistStore
from ctrl_gateway.security.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)

ACCEPTABLE_MEDIA_TYPES = ("application/json", "text/event-stream", "*/*")


def remote_key(remote_host: Optional[str]) -> str:
    """Canonical caller key: dotted quad when derivable, raw peer text otherwise"""
    ipv4 = parse_remote_ipv4(remote_host)
    if ipv4 is not None:
        return ipv4_to_string(ipv4)
    return remote_host or "unknown"


class AccessGate:
    """
    Allowlist, origin, rate and transport-shape checks for one gateway.

    The allowlist snapshot is rebuilt from every config the store
    publishes and replaced as a whole; each check reads it once.
    """

    def __init__(
        self,
        store: AllowlistStore,
        rate_limiter: TokenBucketRateLimiter,
        max_body_bytes: int = 4 * 1024 * 1024
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.max_body_bytes = max_body_bytes
        self._snapshot = AllowlistSnapshot()
        store.subscribe(self._on_config)

    def _on_config(self, config: AllowlistConfig) -> None:
        self._snapshot = AllowlistSnapshot.from_config(config)

    @property
    def snapshot(self) -> AllowlistSnapshot:
        return self._snapshot

    # -- Checks --

    def check_allowlist(self, remote_host: Optional[str], record_blocked: bool = False) -> None:
        """
        Raises:
            ForbiddenError: caller not admitted by the current allowlist
        """
        ipv4 = parse_remote_ipv4(remote_host)
        if self._snapshot.admits(ipv4):
            return

        log_event(logger, "caller_blocked", level="WARNING", remote_host=remote_host)
        if record_blocked and ipv4 is not None:
            self.store.set_last_blocked_ip(ipv4_to_string(ipv4))
        raise ForbiddenError("Caller not in allowlist", remote_ip=remote_host)

    def check_origin(self, origin: Optional[str], remote_host: Optional[str]) -> None:
        """
        Validate Origin header to prevent DNS rebinding attacks.

        An absent header passes; a present one must be http(s) and name the
        caller's own numeric address.

        Raises:
            ForbiddenError: origin does not match the caller
        """
        if origin is None or not origin.strip():
            return

        try:
            parsed = urlparse(origin.strip())
            scheme = (parsed.scheme or "").lower()
            host = parsed.hostname
        except ValueError:
            scheme, host = "", None

        if scheme in ("http", "https") and host is not None and host == remote_key(remote_host):
            return

        log_event(logger, "origin_rejected", level="WARNING", origin=origin, remote_host=remote_host)
        raise ForbiddenError("Invalid Origin header", remote_ip=remote_host)

    def check_rate(self, remote_host: Optional[str]) -> None:
        """
        Raises:
            TooManyRequestsError: caller's bucket is empty
        """
        key = remote_key(remote_host)
        if not self.rate_limiter.allow(key):
            log_event(logger, "rate_limited", level="WARNING", remote_host=key)
            raise TooManyRequestsError(key)

    def check_transport_shape(
        self,
        accept: Optional[str],
        content_type: Optional[str],
        content_length: Optional[str]
    ) -> None:
        """
        Validate Accept, Content-Type and declared Content-Length.

        Raises:
            NotAcceptableError: Accept allows no JSON or event-stream response
            UnsupportedMediaTypeError: body is not declared as JSON
            PayloadTooLargeError: declared length above the limit
        """
        accept_value = (accept or "").lower()
        if not any(media in accept_value for media in ACCEPTABLE_MEDIA_TYPES):
            raise NotAcceptableError(accept or "")

        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type != "application/json":
            raise UnsupportedMediaTypeError(content_type or "")

        if content_length:
            try:
                declared = int(content_length)
            except ValueError:
                declared = -1
            if declared > self.max_body_bytes:
                raise PayloadTooLargeError(declared, self.max_body_bytes)

    def check_body_size(self, body: bytes) -> None:
        """
        Raises:
            PayloadTooLargeError: actual body above the limit
        """
        if len(body) > self.max_body_bytes:
            raise PayloadTooLargeError(len(body), self.max_body_bytes)
