"""Text budget primitives - line and character truncation.

Three strategies are supported:

    START   keep the first N lines / chars
    END     keep the last N lines / chars (logs: newest entries last)
    MIDDLE  keep head and tail around a "... (truncated) ..." marker

A limit <= 0 (or infinity for lines) means "no limit". When both limits
apply, lines are cut first and the char limit runs on the result.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple, Union

from ..constants import ContextLimits

TRUNCATION_MARKER = "... (truncated) ..."

# Smallest char budget that still gets a middle marker.
MIDDLE_MIN_CHARS = 10

Limit = Union[int, float]


class TruncateMode(Enum):
    START = "start"
    END = "end"
    MIDDLE = "middle"


@dataclass
class PreviewResult:
    """Budgeted view of a piece of content."""
    preview: str
    truncated: bool
    total_lines: int
    total_chars: int
    preview_lines: int
    preview_chars: int


def _no_limit(limit: Limit) -> bool:
    return limit <= 0 or math.isinf(limit)


def _split_counts(keep: int) -> Tuple[int, int]:
    # Odd budgets favour the head.
    return math.ceil(keep / 2), keep // 2


def _lines_start(lines: List[str], max_lines: int) -> List[str]:
    return lines[:max_lines]


def _lines_end(lines: List[str], max_lines: int) -> List[str]:
    return lines[-max_lines:]


def _lines_middle(lines: List[str], max_lines: int) -> List[str]:
    if max_lines <= 1:
        return _lines_start(lines, max_lines)
    head_count, tail_count = _split_counts(max_lines - 1)
    tail = lines[-tail_count:] if tail_count > 0 else []
    return lines[:head_count] + [TRUNCATION_MARKER] + tail


def _text_start(text: str, max_chars: int) -> str:
    return text[:max_chars]


def _text_end(text: str, max_chars: int) -> str:
    return text[-max_chars:]


def _text_middle(text: str, max_chars: int) -> str:
    keep = max_chars - len(TRUNCATION_MARKER)
    if max_chars <= MIDDLE_MIN_CHARS or keep <= 0:
        return _text_start(text, max_chars)
    head_count, tail_count = _split_counts(keep)
    return text[:head_count] + TRUNCATION_MARKER + text[len(text) - tail_count:]


LINE_HANDLERS: Dict[TruncateMode, Callable[[List[str], int], List[str]]] = {
    TruncateMode.START: _lines_start,
    TruncateMode.END: _lines_end,
    TruncateMode.MIDDLE: _lines_middle,
}

TEXT_HANDLERS: Dict[TruncateMode, Callable[[str, int], str]] = {
    TruncateMode.START: _text_start,
    TruncateMode.END: _text_end,
    TruncateMode.MIDDLE: _text_middle,
}


def truncate_lines(lines: List[str], max_lines: Limit, mode: TruncateMode) -> Tuple[List[str], bool]:
    """Shorten a list of lines to max_lines using mode."""
    if _no_limit(max_lines) or len(lines) <= max_lines:
        return lines, False
    return LINE_HANDLERS[mode](lines, int(max_lines)), True


def truncate_text(text: str, max_chars: Limit, mode: TruncateMode) -> Tuple[str, bool]:
    """Shorten text to max_chars using mode."""
    if _no_limit(max_chars) or len(text) <= max_chars:
        return text, False
    return TEXT_HANDLERS[mode](text, int(max_chars)), True


def build_preview(
    content: str,
    max_lines: Limit,
    max_chars: Limit,
    mode: TruncateMode
) -> PreviewResult:
    """Apply the line limit, then the char limit, and report counts.

    Totals describe the trimmed input; preview counts describe the final text.
    """
    normalized = content.strip()
    if not normalized:
        return PreviewResult(
            preview="",
            truncated=False,
            total_lines=0,
            total_chars=0,
            preview_lines=0,
            preview_chars=0
        )

    lines = normalized.split("\n")
    kept_lines, lines_truncated = truncate_lines(lines, max_lines, mode)
    preview, chars_truncated = truncate_text("\n".join(kept_lines), max_chars, mode)

    return PreviewResult(
        preview=preview,
        truncated=lines_truncated or chars_truncated,
        total_lines=len(lines),
        total_chars=len(normalized),
        preview_lines=len(preview.split("\n")) if preview else 0,
        preview_chars=len(preview)
    )


def format_preview_block(label: str, content: str, mode: TruncateMode) -> str:
    """Render a preview for tool responses, with a header and a truncation note."""
    result = build_preview(
        content,
        max_lines=ContextLimits.RESPONSE_PREVIEW_MAX_LINES,
        max_chars=ContextLimits.RESPONSE_PREVIEW_MAX_CHARS,
        mode=mode
    )

    if not result.preview:
        return f"{label}: empty."

    header = f"{label} ({result.total_lines} lines, {result.total_chars} chars)"
    note = ""
    if result.truncated:
        note = (
            f"\n[preview truncated: showing {result.preview_lines}/{result.total_lines} lines, "
            f"{result.preview_chars}/{result.total_chars} chars]"
        )
    return f"{header}\n\n{result.preview}{note}"


def format_context_section(
    label: str,
    content: str,
    mode: TruncateMode,
    max_lines: Limit,
    max_chars: Limit
) -> str:
    """Render one labelled context section, or "" when there is nothing to show."""
    result = build_preview(content, max_lines=max_lines, max_chars=max_chars, mode=mode)
    if not result.preview:
        return ""

    note = ""
    if result.truncated:
        note = (
            f"\n\n[truncated: showing {result.preview_lines}/{result.total_lines} lines, "
            f"{result.preview_chars}/{result.total_chars} chars]"
        )
    return f"{label}\n\n{result.preview}{note}"
