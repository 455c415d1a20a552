# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Provides fake device capabilities, a gateway wired to them, and httpx
clients that talk to the gateway in-process with a chosen caller address.
"""

from typing import Any, Dict, List, Optional

import httpx
import pytest

from ctrl_gateway.core.config import Config
from ctrl_gateway.mcp_jsonrpc import build_initialize_request, build_initialized_notification
from ctrl_gateway.server import Gateway
from ctrl_gateway.tools.capabilities import (
    AppInfo,
    AppManager,
    Capabilities,
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

ALLOWED_IP = "10.0.0.5"
BLOCKED_IP = "172.16.0.9"

MCP_HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


# ============================================================================
# Fake Capabilities
# ============================================================================

class FakeClock:
    """Millisecond clock advanced by hand"""

    def __init__(self, start_ms: float = 1_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += seconds * 1000.0


class FakeDisplay(DisplayProvider):
    def __init__(self, width: int = 1080, height: int = 2400):
        self.info = DisplayInfo(width_px=width, height_px=height, density_dpi=420, rotation=0)

    def display_info(self) -> DisplayInfo:
        return self.info


class FakeScreen(ScreenCapturer):
    def __init__(self, png: Optional[bytes] = PNG_BYTES):
        self.png = png

    def capture_png(self) -> bytes:
        return self.png


class RecordingInput(InputInjector):
    """Records every gesture; result controls the reported outcome"""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[tuple] = []

    def tap(self, x, y):
        self.calls.append(("tap", x, y))
        return self.result

    def long_press(self, x, y, duration_ms):
        self.calls.append(("long_press", x, y, duration_ms))
        return self.result

    def swipe(self, x1, y1, x2, y2, duration_ms):
        self.calls.append(("swipe", x1, y1, x2, y2, duration_ms))
        return self.result

    def press_key(self, key):
        self.calls.append(("press_key", key))
        return self.result

    def set_text(self, text):
        self.calls.append(("set_text", text))
        return self.result


def make_element(text: str, clickable: bool = True, children: Optional[List[UiElement]] = None) -> UiElement:
    return UiElement(
        bounds=UiBounds(0, 0, 100, 50),
        text=text,
        class_name="android.widget.Button",
        package_name="com.example.app",
        clickable=clickable,
        children=children or [],
    )


class FakeUi(UiInspector):
    def __init__(self, elements: Optional[List[UiElement]] = None, package: Optional[str] = "com.example.app"):
        self.elements = elements if elements is not None else [
            make_element("Settings", children=[make_element("Wi-Fi"), make_element("Bluetooth")]),
        ]
        self.package = package
        self.clicked: List[tuple] = []

    def _flatten(self) -> List[UiElement]:
        result = []
        stack = list(self.elements)
        while stack:
            element = stack.pop(0)
            result.append(element)
            stack.extend(element.children)
        return result

    def _matches(self, element: UiElement, selector: UiSelector) -> bool:
        if selector.text is not None and element.text != selector.text:
            return False
        if selector.clickable is not None and element.clickable != selector.clickable:
            return False
        return True

    def tree(self) -> List[UiElement]:
        return self.elements

    def find(self, selector: UiSelector, limit: int) -> List[UiElement]:
        return [e for e in self._flatten() if self._matches(e, selector)][:limit]

    def click(self, selector: UiSelector, index: int) -> bool:
        matches = self.find(selector, 50)
        if index >= len(matches):
            raise ElementNotFoundError()
        self.clicked.append((matches[index].text, index))
        return True

    def current_package(self) -> Optional[str]:
        return self.package


class FakeApps(AppManager):
    def __init__(self):
        self.apps = [
            AppInfo("com.example.app", "Example", is_system=False),
            AppInfo("com.android.settings", "Settings", is_system=True),
        ]
        self.launched: List[str] = []

    def is_installed(self, package_name: str) -> bool:
        return any(a.package_name == package_name for a in self.apps)

    def launch(self, package_name: str) -> bool:
        if not self.is_installed(package_name):
            return False
        self.launched.append(package_name)
        return True

    def list_launchable(self) -> List[str]:
        return [a.package_name for a in self.apps if not a.is_system]

    def list_installed(self, include_system: bool = False, query: Optional[str] = None) -> List[AppInfo]:
        apps = [a for a in self.apps if include_system or not a.is_system]
        if query:
            apps = [a for a in apps if query.lower() in a.label.lower() or query.lower() in a.package_name]
        return apps


# ============================================================================
# Gateway Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def input_injector():
    return RecordingInput()


@pytest.fixture
def capabilities(input_injector):
    return Capabilities(
        display=FakeDisplay(),
        screen=FakeScreen(),
        ui=FakeUi(),
        input=input_injector,
        apps=FakeApps(),
    )


@pytest.fixture
def config():
    return Config(allowlist_enabled=True, allowlist_entries=["10.0.0.0/8"])


@pytest.fixture
def gateway(config, capabilities, clock):
    return Gateway(config, capabilities=capabilities, clock=clock)


def make_client(gateway: Gateway, ip: str = ALLOWED_IP) -> httpx.AsyncClient:
    """In-process client whose requests appear to come from ip"""
    transport = httpx.ASGITransport(app=gateway.app, client=(ip, 51234))
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


@pytest.fixture
async def client(gateway):
    async with make_client(gateway) as c:
        yield c


# ============================================================================
# Protocol Helpers
# ============================================================================

def rpc(method: str, request_id: Optional[int] = 1, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return message


async def open_session(client: httpx.AsyncClient, version: str = "2025-11-25") -> str:
    """Run initialize + notifications/initialized, return the session id"""
    response = await client.post(
        "/mcp",
        json=build_initialize_request(1, version, {"name": "pytest", "version": "1.0"}),
        headers=MCP_HEADERS,
    )
    assert response.status_code == 200
    session_id = response.headers["mcp-session-id"]

    response = await client.post(
        "/mcp",
        json=build_initialized_notification(),
        headers={**MCP_HEADERS, "Mcp-Session-Id": session_id},
    )
    assert response.status_code == 202
    return session_id
