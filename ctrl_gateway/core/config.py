# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
CTRL Gateway Configuration - Single source of truth.
YAML is king. Env vars ONLY for deployment overrides.

All gateway settings live in plain text (configs/gateway.yaml); runtime
allowlist changes are written to a separate file (allowlist.path).
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Tuple


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

DEFAULT_PROTOCOL_VERSIONS: Tuple[str, ...] = (
    "2025-11-25",
    "2025-03-26",
    "2024-11-05",
)


@dataclass(frozen=True)
class Config:
    """
    Immutable gateway configuration.
    All values from YAML. No hidden state.
    """

    # -- Server --
    host: str = "0.0.0.0"
    port: int = 8787
    server_name: str = "ctrl-phone"
    server_title: str = "CTRL Phone"
    server_version: str = "1.0"
    server_description: str = "Phone control MCP server"

    # -- Protocol --
    # Ordered newest first; negotiation falls back to the first entry.
    supported_protocol_versions: Tuple[str, ...] = DEFAULT_PROTOCOL_VERSIONS

    # -- Access control --
    rate_limit_capacity: float = 20.0
    rate_limit_refill_per_second: float = 10.0
    max_body_bytes: int = 4 * 1024 * 1024
    allowlist_enabled: bool = True
    allowlist_entries: List[str] = field(default_factory=list)
    allowlist_path: Optional[str] = None

    # -- Transport --
    sse_keepalive_seconds: float = 15.0
    capability_timeout_seconds: float = 10.0
    shutdown_grace_seconds: float = 2.0

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    # -- Derived --
    @property
    def newest_protocol_version(self) -> str:
        return self.supported_protocol_versions[0]

    @property
    def server_info(self) -> dict:
        return {
            "name": self.server_name,
            "title": self.server_title,
            "version": self.server_version,
            "description": self.server_description,
        }


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: str = "configs/gateway.yaml") -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    if not Path(path).exists():
        print(f"Config not found at {path}, using defaults")
        y = {}
    else:
        with open(path) as f:
            y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    # Numbers fall back only when absent; an explicit 0 is kept
    def number(value, default):
        return default if value is None else value

    versions = get(y, "protocol", "supported_versions")
    enabled = get(y, "allowlist", "enabled")

    return Config(
        # Server
        host=os.getenv("CTRL_GATEWAY_HOST") or get(y, "server", "host") or "0.0.0.0",
        port=int(os.getenv("CTRL_GATEWAY_PORT") or number(get(y, "server", "port"), 8787)),
        server_name=get(y, "server", "name") or "ctrl-phone",
        server_title=get(y, "server", "title") or "CTRL Phone",
        server_version=str(get(y, "server", "version") or "1.0"),
        server_description=get(y, "server", "description") or "Phone control MCP server",

        # Protocol
        supported_protocol_versions=tuple(versions) if versions else DEFAULT_PROTOCOL_VERSIONS,

        # Access control
        rate_limit_capacity=float(number(get(y, "rate_limit", "capacity"), 20.0)),
        rate_limit_refill_per_second=float(number(get(y, "rate_limit", "refill_per_second"), 10.0)),
        max_body_bytes=int(number(get(y, "http", "max_body_bytes"), 4 * 1024 * 1024)),
        allowlist_enabled=True if enabled is None else bool(enabled),
        allowlist_entries=[str(e) for e in (get(y, "allowlist", "entries") or [])],
        allowlist_path=get(y, "allowlist", "path"),

        # Transport
        sse_keepalive_seconds=float(number(get(y, "sse", "keepalive_seconds"), 15.0)),
        capability_timeout_seconds=float(number(get(y, "tools", "timeout_seconds"), 10.0)),
        shutdown_grace_seconds=float(number(get(y, "server", "shutdown_grace_seconds"), 2.0)),

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or "INFO",
        log_format=get(y, "logging", "format") or "json",
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("CTRL_GATEWAY_CONFIG_PATH", "configs/gateway.yaml")
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
