"""Redaction and structured logging.

Prompts and memory content end up in log lines, so every message is
passed through sanitize() before it is written. Records go through the
"pimemory" logging hierarchy and are rendered as one JSON object per
line on stderr.
"""
import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any, List, Optional, Pattern

from .constants import Defaults

SENSITIVE_PATTERNS: List[Pattern] = [
    re.compile(r'(api[_-]?key|token|secret|password|passwd|pwd)\s*[:=]\s*[\'"]?[\w\-]+[\'"]?', re.IGNORECASE),
    re.compile(r'sk-ant-[A-Za-z0-9\-]{32,}'),
    re.compile(r'sk-[A-Za-z0-9]{32,}'),
    re.compile(r'AKIA[A-Z0-9]{16}'),
    re.compile(r'gh[pousr]_[A-Za-z0-9_]{36,}'),
    re.compile(r'bearer\s+[\w\-_.~+/]+=*', re.IGNORECASE),
    re.compile(r'(mongodb|postgres|mysql|redis)://[^:]+:[^@]+@', re.IGNORECASE),
]

REDACTED = '[REDACTED]'

ROOT_LOGGER = "pimemory"


def sanitize(message: str) -> str:
    """Remove sensitive data from a message."""
    if not message:
        return message

    result = message
    for pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(REDACTED, result)

    return result


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "component": getattr(record, "component", record.name),
            "event": getattr(record, "event", ""),
            "message": sanitize(record.getMessage()),
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
        }
        for key, value in getattr(record, "fields", {}).items():
            entry[key] = sanitize(value) if isinstance(value, str) else value
        return json.dumps(entry, default=str)


class StderrHandler(logging.StreamHandler):
    """StreamHandler bound to whatever sys.stderr is at emit time."""

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Set the package log level (PI_MEMORY_LOG_LEVEL by default) and install the JSON handler once."""
    root = logging.getLogger(ROOT_LOGGER)
    name = (level or os.environ.get("PI_MEMORY_LOG_LEVEL") or Defaults.LOG_LEVEL).upper()
    level_no = logging.getLevelName(name)
    root.setLevel(level_no if isinstance(level_no, int) else logging.WARNING)

    if not any(isinstance(h, StderrHandler) for h in root.handlers):
        handler = StderrHandler()
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
    return root


class StructuredLogger:
    """Sanitizing wrapper around a logging.Logger that attaches an event name and fields."""

    def __init__(self, component: str):
        self.component = component
        self._logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")

    def log(self, level: int, event: str, message: str = "", **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            sanitize(message),
            extra={"component": self.component, "event": event, "fields": fields}
        )

    def debug(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(logging.DEBUG, event, message, **fields)

    def info(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(logging.INFO, event, message, **fields)

    def warning(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(logging.WARNING, event, message, **fields)

    def error(self, event: str, message: str = "", **fields: Any) -> None:
        self.log(logging.ERROR, event, message, **fields)


def get_logger(component: str) -> StructuredLogger:
    return StructuredLogger(component)


configure_logging()
