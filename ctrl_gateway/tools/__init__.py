# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Device-control tools: catalogue, capability contracts and dispatcher.
"""

from ctrl_gateway.tools.capabilities import (
    AppInfo,
    AppManager,
    Capabilities,
    CapabilityError,
    CapabilityUnavailableError,
    DisplayInfo,
    DisplayProvider,
    ElementNotFoundError,
    InputInjector,
    ScreenCapturer,
    UiBounds,
    UiElement,
    UiInspector,
    UiSelector,
)
from ctrl_gateway.tools.catalogue import TOOL_CATALOGUE, ToolDefinition
from ctrl_gateway.tools.dispatcher import ToolDispatcher

__all__ = [
    "AppInfo",
    "AppManager",
    "Capabilities",
    "CapabilityError",
    "CapabilityUnavailableError",
    "DisplayInfo",
    "DisplayProvider",
    "ElementNotFoundError",
    "InputInjector",
    "ScreenCapturer",
    "UiBounds",
    "UiElement",
    "UiInspector",
    "UiSelector",
    "TOOL_CATALOGUE",
    "ToolDefinition",
    "ToolDispatcher",
]
