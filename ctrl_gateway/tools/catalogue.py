# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Static tool catalogue served by tools/list.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolDefinition(BaseModel):
    """MCP Tool Definition"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    description: str
    input_schema: Dict[str, Any] = Field(alias="inputSchema")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def object_schema(properties: Optional[Dict[str, Any]] = None, required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object"}
    if properties:
        schema["properties"] = properties
    if required:
        schema["required"] = required
    schema["additionalProperties"] = False
    return schema


def _string() -> Dict[str, str]:
    return {"type": "string"}


def _boolean() -> Dict[str, str]:
    return {"type": "boolean"}


def _integer(minimum: Optional[int] = None, maximum: Optional[int] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "integer"}
    if minimum is not None:
        schema["minimum"] = minimum
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def _selector_properties() -> Dict[str, Any]:
    return {
        "text": _string(),
        "contentDescription": _string(),
        "viewId": _string(),
        "className": _string(),
        "packageName": _string(),
        "clickable": _boolean(),
        "editable": _boolean(),
        "enabled": _boolean(),
    }


DEFAULT_FIND_LIMIT = 20
MAX_FIND_LIMIT = 200
DEFAULT_LONG_PRESS_MS = 500
DEFAULT_SWIPE_MS = 300
SYSTEM_KEYS = ("back", "home", "recents")


TOOL_CATALOGUE: List[ToolDefinition] = [
    ToolDefinition(
        name="device.display_info",
        description="Get display size, density, and rotation",
        input_schema=object_schema(),
    ),
    ToolDefinition(
        name="screen.capture",
        description="Capture a PNG screenshot",
        input_schema=object_schema(),
    ),
    ToolDefinition(
        name="app.launch",
        description="Launch an app by package name",
        input_schema=object_schema({"packageName": _string()}, ["packageName"]),
    ),
    ToolDefinition(
        name="app.is_installed",
        description="Check if an app package is installed",
        input_schema=object_schema({"packageName": _string()}, ["packageName"]),
    ),
    ToolDefinition(
        name="app.list_launchable",
        description="List launchable app package names",
        input_schema=object_schema(),
    ),
    ToolDefinition(
        name="app.list_installed",
        description="List installed apps (optionally filter by query)",
        input_schema=object_schema({"query": _string(), "includeSystem": _boolean()}),
    ),
    ToolDefinition(
        name="device.current_app",
        description="Get current foreground app package (from accessibility)",
        input_schema=object_schema(),
    ),
    ToolDefinition(
        name="ui.tree",
        description="Get UI element tree with positions and text",
        input_schema=object_schema(),
    ),
    ToolDefinition(
        name="ui.find",
        description="Find UI elements by selector",
        input_schema=object_schema({
            **_selector_properties(),
            "limit": _integer(minimum=1, maximum=MAX_FIND_LIMIT),
        }),
    ),
    ToolDefinition(
        name="ui.click",
        description="Click a UI element by selector",
        input_schema=object_schema({**_selector_properties(), "index": _integer(minimum=0)}),
    ),
    ToolDefinition(
        name="input.tap",
        description="Tap a point on screen (pixel coordinates)",
        input_schema=object_schema({"x": _integer(minimum=0), "y": _integer(minimum=0)}, ["x", "y"]),
    ),
    ToolDefinition(
        name="input.longPress",
        description="Long press a point on screen",
        input_schema=object_schema(
            {"x": _integer(minimum=0), "y": _integer(minimum=0), "durationMs": _integer(minimum=1)},
            ["x", "y"],
        ),
    ),
    ToolDefinition(
        name="input.swipe",
        description="Swipe from one point to another",
        input_schema=object_schema(
            {
                "x1": _integer(minimum=0),
                "y1": _integer(minimum=0),
                "x2": _integer(minimum=0),
                "y2": _integer(minimum=0),
                "durationMs": _integer(minimum=1),
            },
            ["x1", "y1", "x2", "y2"],
        ),
    ),
    ToolDefinition(
        name="input.key",
        description="Press a system key (back, home, recents)",
        input_schema=object_schema({"key": {"type": "string", "enum": list(SYSTEM_KEYS)}}, ["key"]),
    ),
    ToolDefinition(
        name="input.text",
        description="Set text in the focused input field",
        input_schema=object_schema({"text": _string()}, ["text"]),
    ),
]
