"""pi-memory - persistent plain-text memory for a coding agent

Memory layout (under ~/.pi/agent/memory/ by default):

    ┌─────────────────────────────────────────────────────────────┐
    │                    MEMORY FILES                              │
    ├─────────────────────────────────────────────────────────────┤
    │                                                              │
    │  MEMORY.md           curated long-term facts and decisions   │
    │  SCRATCHPAD.md       checklist of things to keep in mind     │
    │  daily/<date>.md     append-only daily log                   │
    │                                                              │
    └─────────────────────────────────────────────────────────────┘

Before every turn a bounded block is injected into the system prompt:
open scratchpad items, today's log, qmd search hits, MEMORY.md and
yesterday's log, in that priority order.

Usage:
    from pimemory import HookRunner, MemoryConfig

    hooks = HookRunner.from_config(MemoryConfig.load(), session_id="a1b2c3d4e5")
    hooks.session_start()

    system_prompt = hooks.before_agent_start(user_prompt, system_prompt) or system_prompt

    hooks.session.tools.scratchpad("add", session_id="a1b2c3d4e5", text="Fix flaky test")
    hooks.before_compact()
    hooks.session_shutdown()
"""

from .config import MemoryConfig
from .session import MemorySession
from .hooks import HookRunner, LifecycleEvent
from .memory import build_memory_context, MemoryStore

__all__ = [
    'MemoryConfig', 'MemorySession', 'HookRunner', 'LifecycleEvent',
    'build_memory_context', 'MemoryStore'
]
