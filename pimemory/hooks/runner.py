"""Hook Runner - Dispatch lifecycle events to a MemorySession"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from redis.exceptions import RedisError

from ..config import MemoryConfig
from ..constants import RedisKeys
from ..redis_factory import RedisStartupError, create_redis_client
from ..security import get_logger
from ..session import MemorySession
from .events import HookResult, LifecycleEvent

logger = get_logger("hooks")


class HookRunner:
    """Runs the session handler for each lifecycle event.

    Handler errors are captured in the HookResult and never raised, so a
    memory failure cannot break the host's turn.
    """

    def __init__(
        self,
        session: MemorySession,
        session_id: str = "unknown",
        redis_client: Optional[Any] = None
    ):
        self.session = session
        self.session_id = session_id
        self.redis = redis_client

    @classmethod
    def from_config(cls, config: Optional[MemoryConfig] = None, session_id: str = "unknown") -> 'HookRunner':
        """Build a session and, when redis_url is configured, the redis result log."""
        config = config or MemoryConfig.load()
        redis_client = None
        if config.redis_url:
            try:
                redis_client = create_redis_client(config.redis_url)
            except RedisStartupError as e:
                logger.warning("redis_unavailable", str(e), session_id=session_id)
        return cls(MemorySession(config), session_id=session_id, redis_client=redis_client)

    def _handlers(self) -> Dict[LifecycleEvent, Callable[[Dict[str, Any]], Optional[str]]]:
        return {
            LifecycleEvent.SESSION_START: lambda ctx: self.session.on_session_start(),
            LifecycleEvent.BEFORE_AGENT_START: lambda ctx: self.session.before_agent_start(
                ctx.get("prompt") or "", ctx.get("system_prompt") or ""
            ),
            LifecycleEvent.SESSION_BEFORE_COMPACT: lambda ctx: self.session.before_compact(
                ctx.get("session_id") or self.session_id
            ),
            LifecycleEvent.SESSION_SHUTDOWN: lambda ctx: self.session.on_session_shutdown(),
        }

    def run(self, event: LifecycleEvent, context: Optional[Dict[str, Any]] = None) -> HookResult:
        """Handle one event."""
        context = context or {}
        start_time = time.time()

        try:
            output = self._handlers()[event](context)
            result = HookResult(
                event=event.value,
                success=True,
                duration_ms=int((time.time() - start_time) * 1000),
                output=output,
                skipped=output is None,
                skip_reason="Nothing to contribute" if output is None else None
            )
        except Exception as e:
            logger.error("hook_failed", str(e), hook_event=event.value, session_id=self.session_id)
            result = HookResult(
                event=event.value,
                success=False,
                duration_ms=int((time.time() - start_time) * 1000),
                error=str(e)
            )

        self._log_result(result)
        return result

    def _log_result(self, result: HookResult) -> None:
        """Log hook result to Redis if available."""
        if not self.redis:
            return

        log_entry = {
            'session_id': self.session_id,
            'event': result.event,
            'success': result.success,
            'duration_ms': result.duration_ms,
            'skipped': result.skipped,
            'error': result.error,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        key = RedisKeys.hooks_log(self.session_id)
        try:
            self.redis.rpush(key, json.dumps(log_entry))
            self.redis.ltrim(key, -RedisKeys.HOOKS_LOG_MAX, -1)
        except RedisError as e:
            logger.warning("hook_log_failed", str(e), hook_event=result.event, session_id=self.session_id)

    def session_start(self) -> Optional[str]:
        """Returns qmd install instructions when qmd is missing."""
        return self.run(LifecycleEvent.SESSION_START).output

    def before_agent_start(self, prompt: str, system_prompt: str) -> Optional[str]:
        """Returns the replacement system prompt, or None to leave it unchanged."""
        result = self.run(
            LifecycleEvent.BEFORE_AGENT_START,
            {'prompt': prompt, 'system_prompt': system_prompt}
        )
        return result.output if result.success else None

    def before_compact(self, session_id: Optional[str] = None) -> HookResult:
        return self.run(
            LifecycleEvent.SESSION_BEFORE_COMPACT,
            {'session_id': session_id or self.session_id}
        )

    def session_shutdown(self) -> HookResult:
        return self.run(LifecycleEvent.SESSION_SHUTDOWN)
