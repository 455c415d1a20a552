# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Typed extraction of tools/call arguments.

Every failure is an invalid-params JsonRpcError naming the offending
field as "arguments.<field>". A field sent as JSON null counts as absent.
"""

from typing import Any, Dict, Optional

from ctrl_gateway.mcp_exceptions import JsonRpcError
from ctrl_gateway.tools.capabilities import UiSelector

_MISSING = object()


class ToolArguments:
    """Read-only view over the arguments object of one tools/call"""

    def __init__(self, raw: Optional[Dict[str, Any]]):
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise JsonRpcError.invalid_params("Invalid arguments: expected object")
        self.raw = raw

    def _get(self, name: str) -> Any:
        value = self.raw.get(name, _MISSING)
        return _MISSING if value is None else value

    @staticmethod
    def _invalid(name: str, expected: str) -> JsonRpcError:
        return JsonRpcError.invalid_params(f"Invalid arguments.{name}: expected {expected}")

    @staticmethod
    def _missing(name: str) -> JsonRpcError:
        return JsonRpcError.invalid_params(f"Missing arguments.{name}")

    # -- Strings --

    def optional_str(self, name: str) -> Optional[str]:
        value = self._get(name)
        if value is _MISSING:
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise self._invalid(name, "string")
        return value if isinstance(value, str) else str(value)

    def require_str(self, name: str) -> str:
        value = self.optional_str(name)
        if value is None:
            raise self._missing(name)
        return value

    # -- Integers --

    def optional_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        value = self._get(name)
        if value is _MISSING:
            return default
        if isinstance(value, bool):
            raise self._invalid(name, "integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise self._invalid(name, "integer")
        raise self._invalid(name, "integer")

    def require_int(self, name: str) -> int:
        value = self.optional_int(name)
        if value is None:
            raise self._missing(name)
        return value

    # -- Booleans --

    def optional_bool(self, name: str, default: Optional[bool] = None) -> Optional[bool]:
        value = self._get(name)
        if value is _MISSING:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise self._invalid(name, "boolean")

    # -- Composite --

    def selector(self) -> UiSelector:
        return UiSelector(
            text=self.optional_str("text"),
            content_description=self.optional_str("contentDescription"),
            view_id=self.optional_str("viewId"),
            class_name=self.optional_str("className"),
            package_name=self.optional_str("packageName"),
            clickable=self.optional_bool("clickable"),
            editable=self.optional_bool("editable"),
            enabled=self.optional_bool("enabled"),
        )
