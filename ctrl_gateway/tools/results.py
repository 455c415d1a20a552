# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tool call result envelope and content blocks.
"""

import base64
from typing import Any, Dict, List, Optional


def text_block(text: str) -> Dict[str, str]:
    return {"type": "text", "text": text}


def image_block(data: bytes, mime_type: str = "image/png") -> Dict[str, str]:
    """Image content block; data is base64-encoded here"""
    return {
        "type": "image",
        "data": base64.b64encode(data).decode("ascii"),
        "mimeType": mime_type,
    }


def call_tool_result(
    content: List[Dict[str, Any]],
    structured: Optional[Dict[str, Any]] = None,
    is_error: bool = False
) -> Dict[str, Any]:
    """
    Build the tools/call result.

    structuredContent is only emitted when a structured payload is given.
    """
    result: Dict[str, Any] = {"content": list(content)}
    if structured is not None:
        result["structuredContent"] = structured
    result["isError"] = is_error
    return result


def text_result(text: str, structured: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return call_tool_result([text_block(text)], structured)


def error_result(text: str) -> Dict[str, Any]:
    """Domain failure: the call succeeded, the device action did not"""
    return call_tool_result([text_block(text)], is_error=True)
