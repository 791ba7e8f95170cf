"""Tests for MemorySession - lifecycle, reindex debounce, handoff and memory_search."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from pimemory.config import MemoryConfig
from pimemory.memory.context import LONG_TERM_LABEL, SEARCH_LABEL
from pimemory.qmd.protocol import QmdError, SearchSnippet
from pimemory.session import HANDOFF_HEADING, MemorySession, ReindexScheduler

MARKER = "<!-- HANDOFF 2026-03-15 09:30:00 [sess1234] -->"


def make_session(config, store, qmd):
    return MemorySession(config=config, store=store, qmd=qmd)


@pytest.fixture
def session(config, store, mock_qmd):
    s = make_session(config, store, mock_qmd)
    yield s
    s.on_session_shutdown()


def wait_for(event: threading.Event, timeout: float = 2.0) -> bool:
    return event.wait(timeout)


class TestReindexScheduler:
    """Tests for the debounce timer."""

    def test_burst_fires_once(self):
        fired = threading.Event()
        action = MagicMock(side_effect=lambda: fired.set())
        scheduler = ReindexScheduler(action, delay=0.05)

        for _ in range(5):
            scheduler.schedule()

        assert wait_for(fired)
        time.sleep(0.15)
        assert action.call_count == 1
        assert scheduler.pending is False

    def test_cancel_prevents_firing(self):
        action = MagicMock()
        scheduler = ReindexScheduler(action, delay=0.1)
        scheduler.schedule()
        assert scheduler.pending is True

        scheduler.cancel()
        time.sleep(0.2)
        action.assert_not_called()
        assert scheduler.pending is False

    def test_replaced_timer_does_not_fire(self):
        action = MagicMock()
        scheduler = ReindexScheduler(action, delay=10)
        scheduler.schedule()
        stale = scheduler._timer
        scheduler.schedule()

        scheduler._fire(stale)
        action.assert_not_called()
        scheduler.cancel()


class TestSessionStart:
    """Tests for on_session_start."""

    def test_available_with_collection(self, session, mock_qmd, store):
        assert session.on_session_start() is None
        assert session.qmd_available is True
        assert store.daily_dir.is_dir()
        mock_qmd.setup_collection.assert_not_called()

    def test_provisions_missing_collection(self, session, mock_qmd):
        mock_qmd.check_collection.return_value = False
        session.on_session_start()
        mock_qmd.setup_collection.assert_called_once()

    def test_unavailable_returns_install_text(self, session, mock_qmd):
        mock_qmd.is_available.return_value = False
        assert session.on_session_start() == "memory_search requires qmd."
        assert session.qmd_available is False
        mock_qmd.check_collection.assert_not_called()


class TestReindexAfterWrites:
    """Tests for write-triggered reindexing."""

    def test_writes_coalesce_into_one_update(self, session, mock_qmd, session_id):
        fired = threading.Event()
        mock_qmd.update.side_effect = lambda: fired.set() or True
        session.reindex.delay = 0.3
        session.on_session_start()

        for i in range(3):
            session.tools.memory_write("daily", f"entry {i}", session_id)

        assert wait_for(fired)
        time.sleep(0.4)
        assert mock_qmd.update.call_count == 1

    def test_manual_mode_never_schedules(self, memory_dir, store, mock_qmd, session_id):
        s = make_session(MemoryConfig(memory_dir=memory_dir, qmd_update="manual", debounce_seconds=0.01), store, mock_qmd)
        try:
            s.on_session_start()
            s.tools.memory_write("daily", "entry", session_id)
            assert s.reindex.pending is False
            time.sleep(0.05)
            mock_qmd.update.assert_not_called()
        finally:
            s.on_session_shutdown()

    def test_redetects_qmd_after_write(self, session, mock_qmd, session_id):
        assert session.qmd_available is False
        session.tools.memory_write("daily", "entry", session_id)
        mock_qmd.is_available.assert_called_once()
        assert session.qmd_available is True

    def test_no_schedule_when_qmd_missing(self, session, mock_qmd, session_id):
        mock_qmd.is_available.return_value = False
        session.tools.scratchpad("add", session_id, text="task")
        assert session.reindex.pending is False

    def test_shutdown_cancels_pending_update(self, memory_dir, store, mock_qmd, session_id):
        s = make_session(MemoryConfig(memory_dir=memory_dir, debounce_seconds=0.2), store, mock_qmd)
        s.on_session_start()
        s.tools.memory_write("long_term", "fact", session_id)
        assert s.reindex.pending is True

        s.on_session_shutdown()
        time.sleep(0.3)
        mock_qmd.update.assert_not_called()


class TestBeforeAgentStart:
    """Tests for context injection."""

    def test_nothing_to_inject(self, session):
        session.on_session_start()
        assert session.before_agent_start("hello", "system") is None

    def test_injects_long_term(self, session, write_file):
        write_file("MEMORY.md", "Prefers dark mode")
        session.on_session_start()

        prompt = session.before_agent_start("hello", "You are helpful.")
        assert prompt.startswith("You are helpful.\n\n## Memory")
        assert LONG_TERM_LABEL in prompt
        assert "Prefers dark mode" in prompt

    def test_includes_search_hits(self, session, mock_qmd):
        mock_qmd.search.return_value = [SearchSnippet(content="auth uses JWT", path="MEMORY.md")]
        session.on_session_start()

        prompt = session.before_agent_start("how does auth work", "sys")
        assert SEARCH_LABEL in prompt
        assert "_MEMORY.md_\nauth uses JWT" in prompt
        mock_qmd.search.assert_called_once_with("keyword", "how does auth work", 3)

    def test_recall_mode_from_config(self, memory_dir, store, mock_qmd):
        config = MemoryConfig(memory_dir=memory_dir, recall_mode="semantic")
        s = make_session(config, store, mock_qmd)
        try:
            s.on_session_start()
            s.before_agent_start("auth", "sys")
            assert mock_qmd.search.call_args[0][0] == "semantic"
        finally:
            s.on_session_shutdown()

    def test_no_search_setting(self, memory_dir, store, mock_qmd):
        s = make_session(MemoryConfig(memory_dir=memory_dir, no_search=True), store, mock_qmd)
        try:
            s.on_session_start()
            s.before_agent_start("auth", "sys")
            mock_qmd.search.assert_not_called()
        finally:
            s.on_session_shutdown()

    def test_search_failure_still_injects_files(self, session, mock_qmd, write_file):
        write_file("MEMORY.md", "fact")
        mock_qmd.search.side_effect = QmdError("Search failed: boom")
        session.on_session_start()

        prompt = session.before_agent_start("auth", "sys")
        assert "fact" in prompt
        assert SEARCH_LABEL not in prompt


class TestHandoff:
    """Tests for the pre-compaction handoff."""

    def test_nothing_to_hand_off(self, session, session_id, store):
        assert session.before_compact(session_id) is None
        assert store.read_daily("2026-03-15") is None

    def test_open_items_and_log_tail(self, session, session_id, write_file):
        write_file("SCRATCHPAD.md", "# Scratchpad\n\n- [ ] Fix bug\n- [x] Ship release\n- [ ] Write docs\n")
        write_file("daily/2026-03-15.md", "worked on parser")

        assert session.build_handoff(session_id) == "\n".join([
            MARKER,
            HANDOFF_HEADING,
            "**Open scratchpad items:**",
            "- [ ] Fix bug",
            "- [ ] Write docs",
            "**Recent daily log context:**\nworked on parser",
        ])

    def test_items_capped_with_remainder_line(self, session, session_id, write_file):
        write_file("SCRATCHPAD.md", "".join(f"- [ ] item {i}\n" for i in range(35)))
        handoff = session.build_handoff(session_id)

        assert "- [ ] item 29" in handoff
        assert "- [ ] item 30" not in handoff
        assert handoff.endswith("- ... and 5 more")

    def test_log_tail_is_last_fifteen_lines(self, session, session_id, write_file):
        write_file("daily/2026-03-15.md", "\n".join(f"line {i}" for i in range(20)) + "\n\n")
        handoff = session.build_handoff(session_id)

        tail = handoff.split("**Recent daily log context:**\n", 1)[1]
        assert tail.split("\n") == [f"line {i}" for i in range(5, 20)]

    def test_only_done_items_and_no_log(self, session, session_id, write_file):
        write_file("SCRATCHPAD.md", "- [x] done\n")
        assert session.build_handoff(session_id) is None

    def test_before_compact_appends_to_today(self, session, session_id, store, write_file, mock_qmd):
        write_file("daily/2026-03-15.md", "worked on parser")
        session.reindex.delay = 5
        session.on_session_start()

        handoff = session.before_compact(session_id)

        assert store.read_daily("2026-03-15") == f"worked on parser\n\n{handoff}"
        assert session.reindex.pending is True


class TestMemorySearch:
    """Tests for the explicit memory_search tool."""

    def test_unavailable(self, session, mock_qmd):
        mock_qmd.is_available.return_value = False
        result = session.memory_search("auth")
        assert result.is_error is True
        assert result.text == "memory_search requires qmd."

    def test_formats_results(self, session, mock_qmd):
        mock_qmd.search.return_value = [
            SearchSnippet(content="auth uses JWT", path="MEMORY.md", score=0.5),
            SearchSnippet(content="no metadata"),
        ]
        result = session.memory_search("auth", mode="deep", limit=2)

        assert result.text == (
            "### Result 1\n**File:** MEMORY.md\n**Score:** 0.5\n\nauth uses JWT"
            "\n\n---\n\n"
            "### Result 2\n\nno metadata"
        )
        assert result.details == {"mode": "deep", "query": "auth", "count": 2}
        mock_qmd.search.assert_called_once_with("deep", "auth", 2)

    def test_no_results(self, session):
        result = session.memory_search("nothing")
        assert result.text == 'No results found for "nothing" (mode: keyword).'
        assert result.is_error is False

    def test_empty_snippets_dropped(self, session, mock_qmd):
        mock_qmd.search.return_value = [
            SearchSnippet(content="   ", path="daily/2026-03-14.md", score=0.9),
            SearchSnippet(content="auth uses JWT", path="MEMORY.md"),
        ]
        result = session.memory_search("auth")

        assert result.text == "### Result 1\n**File:** MEMORY.md\n\nauth uses JWT"
        assert result.details["count"] == 1

    def test_only_empty_snippets_is_no_results(self, session, mock_qmd):
        mock_qmd.search.return_value = [SearchSnippet(content="", path="MEMORY.md")]
        result = session.memory_search("auth")
        assert result.text == 'No results found for "auth" (mode: keyword).'
        assert result.details["count"] == 0

    def test_collection_setup_failure(self, session, mock_qmd):
        mock_qmd.check_collection.return_value = False
        mock_qmd.setup_collection.return_value = False
        result = session.memory_search("auth")
        assert result.is_error is True
        assert "Could not set up qmd pi-memory collection" in result.text

    def test_search_error(self, session, mock_qmd):
        mock_qmd.search.side_effect = QmdError("Search failed: index locked")
        result = session.memory_search("auth")
        assert result.is_error is True
        assert result.text == "memory_search error: Search failed: index locked"

    def test_invalid_mode(self, session, mock_qmd):
        mock_qmd.search.side_effect = ValueError("'fuzzy' is not a valid SearchMode")
        assert session.memory_search("auth", mode="fuzzy").is_error is True
