"""Memory tools - write, scratchpad and read operations

Each operation reads the whole file, changes it in memory and writes it
back. Successful writes call on_change so the session can schedule a
reindex.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..constants import ContextLimits
from .budget import TruncateMode, build_preview, format_preview_block
from .scratchpad import (
    add_item, clear_done, open_items, parse_scratchpad, serialize_scratchpad, set_done
)
from .store import MemoryStore, short_session_id

WRITE_TARGETS = ("long_term", "daily")
WRITE_MODES = ("append", "overwrite")
SCRATCHPAD_ACTIONS = ("add", "done", "undo", "clear_done", "list")
READ_TARGETS = ("long_term", "scratchpad", "daily", "list")


@dataclass
class ToolResult:
    """Text returned to the agent plus structured details."""
    text: str
    details: Dict[str, Any] = field(default_factory=dict)
    is_error: bool = False


def _response_preview(content: str, mode: TruncateMode):
    return build_preview(
        content,
        max_lines=ContextLimits.RESPONSE_PREVIEW_MAX_LINES,
        max_chars=ContextLimits.RESPONSE_PREVIEW_MAX_CHARS,
        mode=mode
    )


class MemoryTools:
    """Tool operations over a MemoryStore."""

    def __init__(
        self,
        store: MemoryStore,
        on_change: Optional[Callable[[], None]] = None,
        update_mode: str = "background"
    ):
        self.store = store
        self.on_change = on_change
        self.update_mode = update_mode

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()

    def _stamp(self, session_id: str, prefix: str = "") -> Dict[str, str]:
        sid = short_session_id(session_id)
        ts = self.store.timestamp()
        return {"sid": sid, "ts": ts, "meta": f"<!-- {prefix}{ts} [{sid}] -->"}

    # ------------------------------------------------------------------
    # memory_write
    # ------------------------------------------------------------------

    def memory_write(
        self,
        target: str,
        content: str,
        session_id: str,
        mode: str = "append"
    ) -> ToolResult:
        """Write to MEMORY.md (append/overwrite) or append to today's daily log."""
        if target not in WRITE_TARGETS:
            return ToolResult(f"Unknown target: {target}", is_error=True)
        if mode not in WRITE_MODES:
            return ToolResult(f"Unknown mode: {mode}", is_error=True)

        self.store.ensure_dirs()
        if target == "daily":
            return self._append_daily(content, session_id)
        if mode == "overwrite":
            return self._overwrite_long_term(content, session_id)
        return self._append_long_term(content, session_id)

    def _append_daily(self, content: str, session_id: str) -> ToolResult:
        path = self.store.daily_path(self.store.today())
        existing = self.store.read(path) or ""
        existing_preview = _response_preview(existing, TruncateMode.END)
        if existing_preview.preview:
            snippet = "\n\n" + format_preview_block("Existing daily log preview", existing, TruncateMode.END)
        else:
            snippet = "\n\nDaily log was empty."

        stamp = self._stamp(session_id)
        self.store.append_entry(path, f"{stamp['meta']}\n{content}")
        self._changed()

        return ToolResult(
            text=f"Appended to daily log: {path}{snippet}",
            details=self._write_details(path, "daily", "append", stamp, existing_preview)
        )

    def _long_term_snippet(self, existing: str):
        existing_preview = _response_preview(existing, TruncateMode.MIDDLE)
        if existing_preview.preview:
            snippet = "\n\n" + format_preview_block("Existing MEMORY.md preview", existing, TruncateMode.MIDDLE)
        else:
            snippet = "\n\nMEMORY.md was empty."
        return existing_preview, snippet

    def _overwrite_long_term(self, content: str, session_id: str) -> ToolResult:
        path = self.store.long_term_path
        existing_preview, snippet = self._long_term_snippet(self.store.read(path) or "")

        stamp = self._stamp(session_id, prefix="last updated: ")
        self.store.write(path, f"{stamp['meta']}\n{content}")
        self._changed()

        return ToolResult(
            text=f"Overwrote MEMORY.md{snippet}",
            details=self._write_details(path, "long_term", "overwrite", stamp, existing_preview)
        )

    def _append_long_term(self, content: str, session_id: str) -> ToolResult:
        path = self.store.long_term_path
        existing_preview, snippet = self._long_term_snippet(self.store.read(path) or "")

        stamp = self._stamp(session_id)
        self.store.append_entry(path, f"{stamp['meta']}\n{content}")
        self._changed()

        return ToolResult(
            text=f"Appended to MEMORY.md{snippet}",
            details=self._write_details(path, "long_term", "append", stamp, existing_preview)
        )

    def _write_details(self, path, target, mode, stamp, existing_preview) -> Dict[str, Any]:
        return {
            "path": str(path),
            "target": target,
            "mode": mode,
            "session_id": stamp["sid"],
            "timestamp": stamp["ts"],
            "qmd_update_mode": self.update_mode,
            "existing_preview": existing_preview,
        }

    # ------------------------------------------------------------------
    # scratchpad
    # ------------------------------------------------------------------

    def scratchpad(self, action: str, session_id: str, text: Optional[str] = None) -> ToolResult:
        """Manage the checklist: add, done, undo, clear_done, list."""
        if action not in SCRATCHPAD_ACTIONS:
            return ToolResult(f"Unknown action: {action}", is_error=True)

        self.store.ensure_dirs()
        items = parse_scratchpad(self.store.read_scratchpad() or "")

        if action == "list":
            if not items:
                return ToolResult("Scratchpad is empty.")
            serialized = serialize_scratchpad(items)
            return ToolResult(
                text=format_preview_block("Scratchpad preview", serialized, TruncateMode.START),
                details={
                    "count": len(items),
                    "open": len(open_items(items)),
                    "preview": _response_preview(serialized, TruncateMode.START),
                }
            )

        if action in ("add", "done", "undo") and not text:
            return ToolResult(f"Error: 'text' is required for {action}.", is_error=True)

        stamp = self._stamp(session_id)
        details: Dict[str, Any] = {"action": action, "qmd_update_mode": self.update_mode}

        if action == "add":
            add_item(items, text, meta=stamp["meta"])
            headline = f"Added: - [ ] {text}"
        elif action in ("done", "undo"):
            target_done = action == "done"
            if not set_done(items, text, target_done):
                state = "open" if target_done else "done"
                return ToolResult(f'No matching {state} item found for: "{text}"')
            headline = "Updated."
        else:
            items, removed = clear_done(items)
            details["removed"] = removed
            headline = f"Cleared {removed} done item(s)."

        if action != "clear_done":
            details.update({"session_id": stamp["sid"], "timestamp": stamp["ts"]})

        serialized = serialize_scratchpad(items)
        self.store.write(self.store.scratchpad_path, serialized)
        self._changed()

        details["preview"] = _response_preview(serialized, TruncateMode.START)
        return ToolResult(
            text=f"{headline}\n\n{format_preview_block('Scratchpad preview', serialized, TruncateMode.START)}",
            details=details
        )

    # ------------------------------------------------------------------
    # memory_read
    # ------------------------------------------------------------------

    def memory_read(self, target: str, date: Optional[str] = None) -> ToolResult:
        """Read MEMORY.md, SCRATCHPAD.md, a daily log, or list daily logs."""
        if target not in READ_TARGETS:
            return ToolResult(f"Unknown target: {target}", is_error=True)

        self.store.ensure_dirs()

        if target == "list":
            files = self.store.list_daily()
            if not files:
                return ToolResult("No daily logs found.")
            listing = "\n".join(f"- {name}" for name in files)
            return ToolResult(f"Daily logs:\n{listing}", details={"files": files})

        if target == "daily":
            day = date or self.store.today()
            path = self.store.daily_path(day)
            content = self.store.read(path)
            if not content:
                return ToolResult(f"No daily log for {day}.")
            return ToolResult(content, details={"path": str(path), "date": day})

        if target == "scratchpad":
            content = self.store.read_scratchpad()
            if not content or not content.strip():
                return ToolResult("SCRATCHPAD.md is empty or does not exist.")
            return ToolResult(content, details={"path": str(self.store.scratchpad_path)})

        content = self.store.read_long_term()
        if not content:
            return ToolResult("MEMORY.md is empty or does not exist.")
        return ToolResult(content, details={"path": str(self.store.long_term_path)})
