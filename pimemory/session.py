"""Memory Session - per-session handle owning qmd state and the reindex timer

The host runtime creates one MemorySession per agent session and calls
its lifecycle methods (usually through hooks.HookRunner):

    on_session_start()       detect qmd, provision the collection
    before_agent_start()     search + assemble, return the augmented prompt
    before_compact()         write a handoff into today's daily log
    on_session_shutdown()    cancel the pending reindex, stop workers
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from .config import MemoryConfig
from .constants import ContextLimits, QmdConst, UpdateMode
from .memory.context import build_memory_context, inject_memory
from .memory.scratchpad import open_items, parse_scratchpad
from .memory.store import MemoryStore, short_session_id
from .memory.tools import MemoryTools, ToolResult
from .qmd.client import QmdClient
from .qmd.protocol import QmdError, SearchMode
from .qmd.recall import search_relevant_memories
from .security import get_logger

logger = get_logger("session")

HANDOFF_HEADING = "## Session Handoff"


class ReindexScheduler:
    """Debounce: at most one pending trigger; rescheduling replaces it."""

    def __init__(self, action: Callable[[], None], delay: float):
        self.action = action
        self.delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire)
            timer.args = (timer,)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, timer: threading.Timer) -> None:
        with self._lock:
            # A replaced timer that was already running must not fire.
            if self._timer is not timer:
                return
            self._timer = None
        self.action()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class MemorySession:
    """Session-scoped memory handle."""

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        store: Optional[MemoryStore] = None,
        qmd: Optional[QmdClient] = None
    ):
        self.config = config or MemoryConfig.load()
        self.store = store or MemoryStore(self.config.memory_dir)
        self.qmd = qmd or QmdClient(
            self.store.memory_dir,
            collection=self.config.collection,
            binary=self.config.qmd_binary
        )
        self.qmd_available = False
        self.reindex = ReindexScheduler(self._run_update, self.config.debounce_seconds)
        self.tools = MemoryTools(
            self.store,
            on_change=self.schedule_update,
            update_mode=self.config.qmd_update
        )
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="pimemory-search")

    # ------------------------------------------------------------------
    # Reindexing
    # ------------------------------------------------------------------

    def _run_update(self) -> None:
        logger.debug("reindex", collection=self.config.collection)
        self.qmd.update()

    def ensure_qmd_for_update(self) -> bool:
        """Re-detect qmd after a write when it was not known to be available."""
        if self.qmd_available:
            return True
        if self.config.qmd_update != UpdateMode.BACKGROUND:
            return False
        self.qmd_available = self.qmd.is_available()
        return self.qmd_available

    def schedule_update(self) -> None:
        """Called after every write; coalesces bursts into one `qmd update`."""
        if self.config.qmd_update != UpdateMode.BACKGROUND:
            return
        if not self.ensure_qmd_for_update():
            return
        self.reindex.schedule()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_session_start(self) -> Optional[str]:
        """Detect qmd and provision the collection. Returns install text when qmd is missing."""
        self.store.ensure_dirs()
        self.qmd_available = self.qmd.is_available()
        if not self.qmd_available:
            return self.qmd.install_instructions()

        if not self.qmd.check_collection():
            self.qmd.setup_collection()
        return None

    def relevant_memories(self, prompt: str) -> str:
        if self.config.no_search:
            return ""
        return search_relevant_memories(
            prompt,
            client=self.qmd,
            executor=self._executor,
            available=self.qmd_available,
            mode=self.config.recall_mode,
            limit=self.config.recall_limit,
            timeout=self.config.recall_timeout,
        )

    def before_agent_start(self, prompt: str, system_prompt: str) -> Optional[str]:
        """Return system_prompt with the memory block appended, or None if there is nothing to add."""
        context = build_memory_context(self.store, self.relevant_memories(prompt or ""))
        if not context:
            return None
        return inject_memory(system_prompt, context)

    def build_handoff(self, session_id: str) -> Optional[str]:
        parts: List[str] = []

        scratchpad = self.store.read_scratchpad()
        if scratchpad and scratchpad.strip():
            items = open_items(parse_scratchpad(scratchpad))
            if items:
                parts.append("**Open scratchpad items:**")
                shown = items[:ContextLimits.HANDOFF_MAX_ITEMS]
                parts.extend(f"- [ ] {item.text}" for item in shown)
                if len(items) > len(shown):
                    parts.append(f"- ... and {len(items) - len(shown)} more")

        today = self.store.read_daily(self.store.today())
        if today and today.strip():
            tail = "\n".join(today.strip().split("\n")[-ContextLimits.HANDOFF_LOG_TAIL_LINES:])
            parts.append(f"**Recent daily log context:**\n{tail}")

        if not parts:
            return None

        marker = f"<!-- HANDOFF {self.store.timestamp()} [{short_session_id(session_id)}] -->"
        return "\n".join([marker, HANDOFF_HEADING] + parts)

    def before_compact(self, session_id: str) -> Optional[str]:
        """Persist a handoff into today's daily log. Returns the handoff text, if any."""
        self.store.ensure_dirs()
        handoff = self.build_handoff(session_id)
        if handoff is None:
            return None

        self.store.append_entry(self.store.daily_path(self.store.today()), handoff)
        self.schedule_update()
        return handoff

    def on_session_shutdown(self) -> None:
        self.reindex.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # memory_search tool
    # ------------------------------------------------------------------

    def memory_search(
        self,
        query: str,
        mode: str = SearchMode.KEYWORD.value,
        limit: int = QmdConst.SEARCH_DEFAULT_LIMIT
    ) -> ToolResult:
        """Explicit search across all memory files."""
        if not self.qmd_available:
            # qmd may have been installed after the session started.
            self.qmd_available = self.qmd.is_available()
        if not self.qmd_available:
            return ToolResult(self.qmd.install_instructions(), is_error=True)

        if not self.qmd.check_collection() and not self.qmd.setup_collection():
            return ToolResult(
                f"Could not set up qmd {self.config.collection} collection. "
                "Check that qmd is working and the memory directory exists.",
                is_error=True
            )

        try:
            snippets = self.qmd.search(mode, query, limit)
        except (QmdError, ValueError) as e:
            logger.warning("search_failed", str(e), mode=mode)
            return ToolResult(f"memory_search error: {e}", is_error=True)

        usable = [s for s in snippets if s.usable]
        details = {"mode": mode, "query": query, "count": len(usable)}
        if not usable:
            return ToolResult(f'No results found for "{query}" (mode: {mode}).', details=details)

        blocks = []
        for i, snippet in enumerate(usable, start=1):
            lines = [f"### Result {i}"]
            if snippet.path:
                lines.append(f"**File:** {snippet.path}")
            if snippet.score is not None:
                lines.append(f"**Score:** {snippet.score}")
            lines.append(f"\n{snippet.content}")
            blocks.append("\n".join(lines))

        return ToolResult("\n\n---\n\n".join(blocks), details=details)
