"""Lifecycle events the host runtime fires into the memory layer"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LifecycleEvent(Enum):
    SESSION_START = "session_start"
    BEFORE_AGENT_START = "before_agent_start"
    SESSION_BEFORE_COMPACT = "session_before_compact"
    SESSION_SHUTDOWN = "session_shutdown"


@dataclass
class HookResult:
    """Result of handling one lifecycle event."""
    event: str
    success: bool
    duration_ms: int
    output: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
