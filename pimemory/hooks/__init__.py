"""pi-memory Hooks

Lifecycle entry points for the host agent runtime.
"""

from .runner import HookRunner
from .events import HookResult, LifecycleEvent

__all__ = [
    'HookRunner',
    'HookResult',
    'LifecycleEvent'
]
