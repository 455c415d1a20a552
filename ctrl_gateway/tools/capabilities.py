# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Device capability contracts.

The gateway never talks to device hardware itself. Each capability is a
small class whose methods a host integration overrides; methods may be
plain functions or coroutines. The base implementations report the
capability as unavailable so an unconfigured gateway answers tool calls
with a domain error instead of crashing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


SCREEN_CAPTURE_DISABLED = "Screen capture not enabled. Open the app and enable screen capture."
ACCESSIBILITY_DISABLED = "Accessibility service not enabled."
INPUT_DISABLED = "Input control not enabled. Enable the CTRL Accessibility Service."
DISPLAY_UNAVAILABLE = "Display information not available."
APPS_UNAVAILABLE = "App management not available."


# =============================================================================
# FAILURES
# =============================================================================

class CapabilityError(Exception):
    """A device action failed; reported to the caller as an isError result"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CapabilityUnavailableError(CapabilityError):
    """The backing service is not enabled or not present"""


class ElementNotFoundError(CapabilityError):
    """No UI element matched a selector"""

    def __init__(self, message: str = "No matching element for selector"):
        super().__init__(message)


class CapabilityTimeoutError(CapabilityError):
    """A capability call did not finish within the configured timeout"""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s")
        self.operation = operation
        self.timeout_seconds = timeout_seconds


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class DisplayInfo:
    width_px: int
    height_px: int
    density_dpi: int = 0
    rotation: int = 0

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width_px and 0 <= y < self.height_px

    def to_dict(self) -> Dict[str, int]:
        return {
            "widthPx": self.width_px,
            "heightPx": self.height_px,
            "densityDpi": self.density_dpi,
            "rotation": self.rotation,
        }


@dataclass(frozen=True)
class UiSelector:
    """Attribute filter for UI elements; unset fields match anything"""
    text: Optional[str] = None
    content_description: Optional[str] = None
    view_id: Optional[str] = None
    class_name: Optional[str] = None
    package_name: Optional[str] = None
    clickable: Optional[bool] = None
    editable: Optional[bool] = None
    enabled: Optional[bool] = None


@dataclass(frozen=True)
class UiBounds:
    left: int
    top: int
    right: int
    bottom: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
            "centerX": (self.left + self.right) // 2,
            "centerY": (self.top + self.bottom) // 2,
        }


@dataclass
class UiElement:
    bounds: UiBounds
    text: Optional[str] = None
    content_description: Optional[str] = None
    view_id: Optional[str] = None
    class_name: Optional[str] = None
    package_name: Optional[str] = None
    clickable: bool = False
    editable: bool = False
    focused: bool = False
    enabled: bool = True
    children: List["UiElement"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "contentDescription": self.content_description,
            "viewId": self.view_id,
            "className": self.class_name,
            "packageName": self.package_name,
            "clickable": self.clickable,
            "editable": self.editable,
            "focused": self.focused,
            "enabled": self.enabled,
            "bounds": self.bounds.to_dict(),
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class AppInfo:
    package_name: str
    label: str
    is_system: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"packageName": self.package_name, "label": self.label, "isSystem": self.is_system}


# =============================================================================
# CONTRACTS
# =============================================================================

class DisplayProvider:
    def display_info(self) -> DisplayInfo:
        raise CapabilityUnavailableError(DISPLAY_UNAVAILABLE)


class ScreenCapturer:
    def capture_png(self) -> bytes:
        """Return PNG bytes of the current screen"""
        raise CapabilityUnavailableError(SCREEN_CAPTURE_DISABLED)


class UiInspector:
    def tree(self) -> List[UiElement]:
        """Return the root elements of the current UI hierarchy"""
        raise CapabilityUnavailableError(ACCESSIBILITY_DISABLED)

    def find(self, selector: UiSelector, limit: int) -> List[UiElement]:
        raise CapabilityUnavailableError(ACCESSIBILITY_DISABLED)

    def click(self, selector: UiSelector, index: int) -> bool:
        """
        Click the index-th element matching selector.

        Raises:
            ElementNotFoundError: fewer than index + 1 elements match
        """
        raise CapabilityUnavailableError(ACCESSIBILITY_DISABLED)

    def current_package(self) -> Optional[str]:
        """Package of the foreground app, None when unknown"""
        raise CapabilityUnavailableError(ACCESSIBILITY_DISABLED)


class InputInjector:
    """
    Gesture and key injection. Each method returns True when the action was
    dispatched and False when the input service refused it.
    """

    def tap(self, x: int, y: int) -> bool:
        raise CapabilityUnavailableError(INPUT_DISABLED)

    def long_press(self, x: int, y: int, duration_ms: int) -> bool:
        raise CapabilityUnavailableError(INPUT_DISABLED)

    def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> bool:
        raise CapabilityUnavailableError(INPUT_DISABLED)

    def press_key(self, key: str) -> bool:
        """key is one of back, home, recents"""
        raise CapabilityUnavailableError(INPUT_DISABLED)

    def set_text(self, text: str) -> bool:
        """Replace the text of the focused input field"""
        raise CapabilityUnavailableError(INPUT_DISABLED)


class AppManager:
    def is_installed(self, package_name: str) -> bool:
        raise CapabilityUnavailableError(APPS_UNAVAILABLE)

    def launch(self, package_name: str) -> bool:
        raise CapabilityUnavailableError(APPS_UNAVAILABLE)

    def list_launchable(self) -> List[str]:
        raise CapabilityUnavailableError(APPS_UNAVAILABLE)

    def list_installed(self, include_system: bool = False, query: Optional[str] = None) -> List[AppInfo]:
        raise CapabilityUnavailableError(APPS_UNAVAILABLE)


@dataclass
class Capabilities:
    """The set of collaborators a gateway dispatches tool calls to"""
    display: DisplayProvider = field(default_factory=DisplayProvider)
    screen: ScreenCapturer = field(default_factory=ScreenCapturer)
    ui: UiInspector = field(default_factory=UiInspector)
    input: InputInjector = field(default_factory=InputInjector)
    apps: AppManager = field(default_factory=AppManager)
