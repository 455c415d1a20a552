# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Access control for the gateway: IP allowlist, origin validation,
token-bucket rate limiting and transport-shape checks.
"""

from ctrl_gateway.security.access_gate import AccessGate, remote_key
from ctrl_gateway.security.allowlist import (
    AllowlistConfig,
    AllowlistSnapshot,
    AllowRule,
    CidrBlock,
    ExactAddress,
    normalize_entry,
    parse_entry,
    parse_remote_ipv4,
)
from ctrl_gateway.security.allowlist_store import AllowlistStore
from ctrl_gateway.security.rate_limiter import TokenBucketRateLimiter

__all__ = [
    "AccessGate",
    "remote_key",
    "AllowlistConfig",
    "AllowlistSnapshot",
    "AllowRule",
    "CidrBlock",
    "ExactAddress",
    "normalize_entry",
    "parse_entry",
    "parse_remote_ipv4",
    "AllowlistStore",
    "TokenBucketRateLimiter",
]
