# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dependency injection for the CTRL gateway.

Provides FastAPI dependencies for the gateway-owned runtime objects.
"""

from typing import TYPE_CHECKING, Optional

from fastapi import Request

if TYPE_CHECKING:
    from ctrl_gateway.server import Gateway


def get_gateway(request: Request) -> "Gateway":
    """
    Get the Gateway instance that owns this application.

    Returns:
        Gateway: stored in app.state by create_app()
    """
    return request.app.state.gateway


def get_remote_host(request: Request) -> Optional[str]:
    """Socket peer address of the caller, None when the server cannot tell"""
    return request.client.host if request.client else None
