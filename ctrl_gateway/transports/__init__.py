# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
HTTP transports: Streamable HTTP (/mcp) and SSE (/sse).
"""

from ctrl_gateway.transports import sse, streamable_http

__all__ = ["sse", "streamable_http"]
