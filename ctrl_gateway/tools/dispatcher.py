# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tool Dispatcher

Maps tool names to argument-validated calls on the capability
collaborators and normalizes every outcome into a call result.

Malformed calls raise JsonRpcError (invalid params). Device failures are
returned as results with isError set, so the caller can tell "your
request was wrong" apart from "the device action failed".
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ctrl_gateway.core.logging import log_event
from ctrl_gateway.mcp_exceptions import JsonRpcError
from ctrl_gateway.tools.arguments import ToolArguments
from ctrl_gateway.tools.capabilities import (
    INPUT_DISABLED,
    SCREEN_CAPTURE_DISABLED,
    Capabilities,
    CapabilityError,
    CapabilityTimeoutError,
    DisplayInfo,
    ElementNotFoundError,
)
from ctrl_gateway.tools.catalogue import (
    DEFAULT_FIND_LIMIT,
    DEFAULT_LONG_PRESS_MS,
    DEFAULT_SWIPE_MS,
    MAX_FIND_LIMIT,
    SYSTEM_KEYS,
    TOOL_CATALOGUE,
    ToolDefinition,
)
from ctrl_gateway.tools.results import (
    call_tool_result,
    error_result,
    image_block,
    text_block,
    text_result,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolArguments], Awaitable[Dict[str, Any]]]


class ToolDispatcher:
    """
    Registry of tools and the handlers that serve them.

    Args:
        capabilities: Device collaborators the tools call into
        timeout_seconds: Upper bound for a single capability call
    """

    def __init__(self, capabilities: Optional[Capabilities] = None, timeout_seconds: float = 10.0):
        self.capabilities = capabilities or Capabilities()
        self.timeout_seconds = timeout_seconds
        self.tools: Dict[str, ToolHandler] = {}
        self.tool_definitions: List[ToolDefinition] = []
        self._register_builtin_tools()

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def register_tool(
        self,
        name: str,
        handler: ToolHandler,
        description: str,
        input_schema: Dict[str, Any]
    ) -> None:
        """Register a tool with this dispatcher"""
        if name in self.tools:
            raise ValueError(f"Tool already registered: {name}")
        self.tools[name] = handler
        self.tool_definitions.append(
            ToolDefinition(name=name, description=description, input_schema=input_schema)
        )
        logger.debug(f"Registered tool: {name}")

    def _register_builtin_tools(self) -> None:
        handlers: Dict[str, ToolHandler] = {
            "device.display_info": self._display_info,
            "screen.capture": self._screen_capture,
            "app.launch": self._app_launch,
            "app.is_installed": self._app_is_installed,
            "app.list_launchable": self._app_list_launchable,
            "app.list_installed": self._app_list_installed,
            "device.current_app": self._current_app,
            "ui.tree": self._ui_tree,
            "ui.find": self._ui_find,
            "ui.click": self._ui_click,
            "input.tap": self._input_tap,
            "input.longPress": self._input_long_press,
            "input.swipe": self._input_swipe,
            "input.key": self._input_key,
            "input.text": self._input_text,
        }
        for definition in TOOL_CATALOGUE:
            self.register_tool(
                definition.name,
                handlers[definition.name],
                definition.description,
                definition.input_schema,
            )

    def list_tools(self) -> Dict[str, Any]:
        """Result payload of tools/list"""
        return {"tools": [definition.to_wire() for definition in self.tool_definitions]}

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def call_tool(self, params: Any) -> Dict[str, Any]:
        """
        Execute tools/call.

        Raises:
            JsonRpcError: invalid params for a missing/unknown name or bad
                arguments
        """
        if not isinstance(params, dict):
            raise JsonRpcError.invalid_params("Missing params")
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcError.invalid_params("Missing params.name")

        handler = self.tools.get(name)
        if handler is None:
            raise JsonRpcError.invalid_params(f"Unknown tool: {name}")

        arguments = ToolArguments(params.get("arguments"))
        try:
            result = await handler(arguments)
        except CapabilityError as e:
            log_event(logger, "tool_call_failed", level="WARNING", tool=name, error=e.message)
            return error_result(e.message)

        log_event(logger, "tool_call", tool=name, is_error=result["isError"])
        return result

    async def _invoke(self, operation: str, fn: Callable, *args: Any) -> Any:
        """
        Call a capability method, sync or async, within the timeout.

        Sync methods run in a worker thread so a slow device call does not
        stall the event loop. A timed-out call is abandoned, not cancelled.
        """
        try:
            if asyncio.iscoroutinefunction(fn):
                return await asyncio.wait_for(fn(*args), self.timeout_seconds)
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), self.timeout_seconds)
        except asyncio.TimeoutError:
            raise CapabilityTimeoutError(operation, self.timeout_seconds)

    async def _display(self) -> DisplayInfo:
        return await self._invoke("display_info", self.capabilities.display.display_info)

    # =========================================================================
    # DEVICE / SCREEN
    # =========================================================================

    async def _display_info(self, args: ToolArguments) -> Dict[str, Any]:
        info = await self._display()
        payload = info.to_dict()
        return text_result(json.dumps(payload, separators=(",", ":")), payload)

    async def _screen_capture(self, args: ToolArguments) -> Dict[str, Any]:
        info = await self._display()
        png = await self._invoke("capture_png", self.capabilities.screen.capture_png)
        if not png:
            return error_result(SCREEN_CAPTURE_DISABLED)
        return call_tool_result(
            [
                image_block(png, "image/png"),
                text_block(f"Captured {info.width_px}x{info.height_px} rotation={info.rotation}"),
            ],
            {"widthPx": info.width_px, "heightPx": info.height_px, "rotation": info.rotation},
        )

    async def _current_app(self, args: ToolArguments) -> Dict[str, Any]:
        package = await self._invoke("current_package", self.capabilities.ui.current_package)
        return call_tool_result(
            [text_block(f"currentApp={package or 'unknown'}")],
            {"packageName": package},
            is_error=package is None,
        )

    # =========================================================================
    # APPS
    # =========================================================================

    async def _app_launch(self, args: ToolArguments) -> Dict[str, Any]:
        package = args.require_str("packageName")
        ok = await self._invoke("launch", self.capabilities.apps.launch, package)
        if not ok:
            return error_result(f"Unable to launch {package}. Is it installed?")
        return text_result(f"Launched {package}")

    async def _app_is_installed(self, args: ToolArguments) -> Dict[str, Any]:
        package = args.require_str("packageName")
        installed = bool(await self._invoke("is_installed", self.capabilities.apps.is_installed, package))
        return text_result(
            f"{package} installed={str(installed).lower()}",
            {"packageName": package, "installed": installed},
        )

    async def _app_list_launchable(self, args: ToolArguments) -> Dict[str, Any]:
        packages = list(await self._invoke("list_launchable", self.capabilities.apps.list_launchable))
        return text_result(f"{len(packages)} launchable packages", {"packages": packages})

    async def _app_list_installed(self, args: ToolArguments) -> Dict[str, Any]:
        query = args.optional_str("query")
        include_system = args.optional_bool("includeSystem", default=False)
        apps = await self._invoke(
            "list_installed", self.capabilities.apps.list_installed, include_system, query
        )
        return text_result(f"{len(apps)} installed apps", {"apps": [app.to_dict() for app in apps]})

    # =========================================================================
    # UI
    # =========================================================================

    async def _ui_tree(self, args: ToolArguments) -> Dict[str, Any]:
        elements = await self._invoke("tree", self.capabilities.ui.tree)
        return text_result(
            f"UI tree captured with {len(elements)} root elements",
            {"elements": [element.to_dict() for element in elements]},
        )

    async def _ui_find(self, args: ToolArguments) -> Dict[str, Any]:
        selector = args.selector()
        limit = args.optional_int("limit", default=DEFAULT_FIND_LIMIT)
        limit = max(1, min(MAX_FIND_LIMIT, limit))
        elements = await self._invoke("find", self.capabilities.ui.find, selector, limit)
        elements = list(elements)[:limit]
        return text_result(
            f"Found {len(elements)} elements",
            {"elements": [element.to_dict() for element in elements]},
        )

    async def _ui_click(self, args: ToolArguments) -> Dict[str, Any]:
        selector = args.selector()
        index = args.optional_int("index", default=0)
        if index < 0:
            raise ElementNotFoundError()
        ok = await self._invoke("click", self.capabilities.ui.click, selector, index)
        if not ok:
            return error_result("Failed to click element")
        return text_result("Clicked element")

    # =========================================================================
    # INPUT
    # =========================================================================

    async def _input_tap(self, args: ToolArguments) -> Dict[str, Any]:
        x = args.require_int("x")
        y = args.require_int("y")
        info = await self._display()
        if not info.contains(x, y):
            return error_result(f"Tap out of bounds: ({x},{y}) for {info.width_px}x{info.height_px}")
        ok = await self._invoke("tap", self.capabilities.input.tap, x, y)
        if not ok:
            return error_result(INPUT_DISABLED)
        return text_result(f"Tapped ({x},{y})")

    async def _input_long_press(self, args: ToolArguments) -> Dict[str, Any]:
        x = args.require_int("x")
        y = args.require_int("y")
        duration = args.optional_int("durationMs", default=DEFAULT_LONG_PRESS_MS)
        info = await self._display()
        if not info.contains(x, y):
            return error_result(f"Long press out of bounds: ({x},{y}) for {info.width_px}x{info.height_px}")
        ok = await self._invoke("long_press", self.capabilities.input.long_press, x, y, duration)
        if not ok:
            return error_result(INPUT_DISABLED)
        return text_result(f"Long pressed ({x},{y}) for {duration}ms")

    async def _input_swipe(self, args: ToolArguments) -> Dict[str, Any]:
        x1 = args.require_int("x1")
        y1 = args.require_int("y1")
        x2 = args.require_int("x2")
        y2 = args.require_int("y2")
        duration = args.optional_int("durationMs", default=DEFAULT_SWIPE_MS)
        info = await self._display()
        if not (info.contains(x1, y1) and info.contains(x2, y2)):
            return error_result("Swipe coordinates out of bounds")
        ok = await self._invoke("swipe", self.capabilities.input.swipe, x1, y1, x2, y2, duration)
        if not ok:
            return error_result(INPUT_DISABLED)
        return text_result(f"Swiped from ({x1},{y1}) to ({x2},{y2}) in {duration}ms")

    async def _input_key(self, args: ToolArguments) -> Dict[str, Any]:
        key = args.require_str("key")
        if key not in SYSTEM_KEYS:
            return error_result(f"Unknown key: {key}. Use back, home, or recents.")
        ok = await self._invoke("press_key", self.capabilities.input.press_key, key)
        if not ok:
            return error_result(INPUT_DISABLED)
        return text_result(f"Pressed {key} key")

    async def _input_text(self, args: ToolArguments) -> Dict[str, Any]:
        text = args.require_str("text")
        ok = await self._invoke("set_text", self.capabilities.input.set_text, text)
        if not ok:
            return error_result("Unable to set text. Focus an input field first.")
        return text_result("Text set")
