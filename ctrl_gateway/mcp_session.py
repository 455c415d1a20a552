# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
MCP Session Data Structure
"""

import time
from dataclasses import dataclass, field
from datetime import datetime


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MCPSession:
    """Server-side state of one client conversation"""
    session_id: str
    protocol_version: str
    initialized: bool = False
    last_seen_ms: int = field(default_factory=now_ms)
    created_at: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        self.last_seen_ms = now_ms()
