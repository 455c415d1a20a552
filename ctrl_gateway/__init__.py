# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
CTRL Gateway - remote device control over MCP (JSON-RPC 2.0 over HTTP)
"""

__version__ = "1.0.0"
