# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for the CTRL gateway.

Gateway code logs events, not sentences: the message is a short event name
(`caller_blocked`, `tool_call`, `sse_connected`) and the details travel as
record attributes. Both formatters render those attributes, JSON for
collectors and key=value for a terminal.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict


PACKAGE_LOGGER = "ctrl_gateway"

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "asctime"
])


def event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record by log_event"""
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Example:
        {"timestamp": "2025-06-01T10:00:00.123Z", "level": "WARNING",
         "logger": "ctrl_gateway.security.access_gate",
         "message": "caller_blocked", "remote_host": "172.16.0.9"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
                .isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(event_fields(record))
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with event fields appended as key=value"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = event_fields(record)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Configure the package logger once at startup.

    Module loggers (`logging.getLogger(__name__)`) under `ctrl_gateway`
    propagate to it, so a single stdout handler covers the whole gateway.
    Calling it again replaces the handler rather than adding a second one.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())
    logger.addHandler(handler)
    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **kwargs: Any
) -> None:
    """
    Log structured event with additional fields.

    Args:
        logger: Logger instance
        event: Event name
        level: Log level
        **kwargs: Additional fields to include in log
    """
    log_func = getattr(logger, level.lower())
    log_func(event, extra=kwargs)
