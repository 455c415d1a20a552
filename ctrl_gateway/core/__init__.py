# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the CTRL gateway.

This package contains:
- config: Configuration management
- errors: Transport/access exceptions
- logging: Structured logging
"""

from ctrl_gateway.core.config import get_config, load_config, Config
from ctrl_gateway.core.errors import GatewayError, ForbiddenError, TooManyRequestsError
from ctrl_gateway.core.logging import configure_logging, log_event

__all__ = [
    "get_config",
    "load_config",
    "Config",
    "GatewayError",
    "ForbiddenError",
    "TooManyRequestsError",
    "configure_logging",
    "log_event",
]
