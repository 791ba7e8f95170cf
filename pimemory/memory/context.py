"""Context assembly - the memory block injected before every agent turn.

Sections, highest priority first:

    1. open scratchpad items      keep start
    2. today's daily log          keep end
    3. auto-retrieved search hits keep start
    4. MEMORY.md                  keep middle
    5. yesterday's daily log      keep end

Each section has its own budget. The joined block then gets one more
char-only pass against CONTEXT_MAX_CHARS; since that pass keeps the start,
the last sections are the first to be cut.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from ..constants import ContextLimits
from .budget import TruncateMode, build_preview, format_context_section
from .scratchpad import open_items, parse_scratchpad, serialize_scratchpad
from .store import MemoryStore

CONTEXT_HEADING = "# Memory"
SECTION_DIVIDER = "\n\n---\n\n"

SCRATCHPAD_LABEL = "## SCRATCHPAD.md (working context)"
SEARCH_LABEL = "## Relevant memories (auto-retrieved)"
LONG_TERM_LABEL = "## MEMORY.md (long-term)"

OVERALL_NOTE = "\n\n[truncated overall context: showing {shown}/{total} chars]"

MEMORY_INSTRUCTIONS = "\n".join([
    "\n\n## Memory",
    "The following memory files have been loaded. Use the memory_write tool to persist important information.",
    "- Decisions, preferences, and durable facts → MEMORY.md",
    "- Day-to-day notes and running context → daily/<YYYY-MM-DD>.md",
    "- Things to fix later or keep in mind → scratchpad tool",
    "- Use memory_search to find past context across all memory files (keyword, semantic, or deep search).",
    "- Use #tags (e.g. #decision, #preference) and [[links]] (e.g. [[auth-strategy]]) in memory content "
    "to improve future search recall.",
    '- If someone says "remember this," write it immediately.',
    "",
])


def daily_label(date: str, relative: str) -> str:
    return f"## Daily log: {date} ({relative})"


@dataclass
class ContentSection:
    """One labelled source with its truncation budget."""
    label: str
    raw_content: str
    mode: TruncateMode
    max_lines: int
    max_chars: int

    def render(self) -> str:
        if not self.raw_content.strip():
            return ""
        return format_context_section(
            self.label, self.raw_content, self.mode, self.max_lines, self.max_chars
        )


def _scratchpad_section(store: MemoryStore) -> Optional[ContentSection]:
    content = store.read_scratchpad()
    if not content or not content.strip():
        return None

    items = open_items(parse_scratchpad(content))
    if not items:
        return None

    return ContentSection(
        label=SCRATCHPAD_LABEL,
        raw_content=serialize_scratchpad(items),
        mode=TruncateMode.START,
        max_lines=ContextLimits.SCRATCHPAD_MAX_LINES,
        max_chars=ContextLimits.SCRATCHPAD_MAX_CHARS,
    )


def _daily_section(store: MemoryStore, date: str, relative: str) -> Optional[ContentSection]:
    content = store.read_daily(date)
    if not content:
        return None
    return ContentSection(
        label=daily_label(date, relative),
        raw_content=content,
        mode=TruncateMode.END,
        max_lines=ContextLimits.DAILY_MAX_LINES,
        max_chars=ContextLimits.DAILY_MAX_CHARS,
    )


def _search_section(search_results: Optional[str]) -> Optional[ContentSection]:
    if not search_results:
        return None
    return ContentSection(
        label=SEARCH_LABEL,
        raw_content=search_results,
        mode=TruncateMode.START,
        max_lines=ContextLimits.SEARCH_MAX_LINES,
        max_chars=ContextLimits.SEARCH_MAX_CHARS,
    )


def _long_term_section(store: MemoryStore) -> Optional[ContentSection]:
    content = store.read_long_term()
    if not content:
        return None
    return ContentSection(
        label=LONG_TERM_LABEL,
        raw_content=content,
        mode=TruncateMode.MIDDLE,
        max_lines=ContextLimits.LONG_TERM_MAX_LINES,
        max_chars=ContextLimits.LONG_TERM_MAX_CHARS,
    )


def collect_sections(store: MemoryStore, search_results: Optional[str] = None) -> List[ContentSection]:
    """Read every source fresh and return the non-absent ones in priority order."""
    candidates = [
        _scratchpad_section(store),
        _daily_section(store, store.today(), "today"),
        _search_section(search_results),
        _long_term_section(store),
        _daily_section(store, store.yesterday(), "yesterday"),
    ]
    return [section for section in candidates if section is not None]


def build_memory_context(store: MemoryStore, search_results: Optional[str] = None) -> str:
    """Assemble the bounded memory block. Returns "" when every source is absent."""
    rendered = [section.render() for section in collect_sections(store, search_results)]
    rendered = [text for text in rendered if text]
    if not rendered:
        return ""

    context = f"{CONTEXT_HEADING}\n\n{SECTION_DIVIDER.join(rendered)}"
    if len(context) <= ContextLimits.CONTEXT_MAX_CHARS:
        return context

    result = build_preview(
        context,
        max_lines=math.inf,
        max_chars=ContextLimits.CONTEXT_MAX_CHARS,
        mode=TruncateMode.START,
    )
    note = ""
    if result.truncated:
        note = OVERALL_NOTE.format(shown=result.preview_chars, total=result.total_chars)
    return f"{result.preview}{note}"


def inject_memory(system_prompt: str, context: str) -> str:
    """Append usage instructions and the memory block to a system prompt."""
    return system_prompt + MEMORY_INSTRUCTIONS + context
