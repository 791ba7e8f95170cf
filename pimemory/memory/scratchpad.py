"""Scratchpad checklist format.

    # Scratchpad

    <!-- 2026-01-02 10:00:00 [a1b2c3d4] -->
    - [ ] Fix flaky login test
    - [x] Ship release notes

An item is a line of the exact form "- [ ] text", "- [x] text" or
"- [X] text". A whole-line HTML comment directly above an item is that
item's metadata. Every other line is ignored.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

SCRATCHPAD_TITLE = "# Scratchpad"

ITEM_PATTERN = re.compile(r"^- \[([ xX])\] (.+)$")
META_PATTERN = re.compile(r"^<!--.*-->$")


@dataclass
class ScratchpadItem:
    """A single checklist item."""
    done: bool
    text: str
    meta: str = ""


def parse_scratchpad(content: str) -> List[ScratchpadItem]:
    """Parse checklist items, keeping their order."""
    items = []
    lines = content.split("\n")

    for i, line in enumerate(lines):
        match = ITEM_PATTERN.match(line)
        if not match:
            continue

        meta = ""
        if i > 0 and META_PATTERN.match(lines[i - 1]):
            meta = lines[i - 1]

        items.append(ScratchpadItem(
            done=match.group(1).lower() == "x",
            text=match.group(2),
            meta=meta
        ))

    return items


def serialize_scratchpad(items: List[ScratchpadItem]) -> str:
    """Render items back to the checklist format with a trailing newline."""
    lines = [SCRATCHPAD_TITLE, ""]
    for item in items:
        if item.meta:
            lines.append(item.meta)
        checkbox = "[x]" if item.done else "[ ]"
        lines.append(f"- {checkbox} {item.text}")
    return "\n".join(lines) + "\n"


def open_items(items: List[ScratchpadItem]) -> List[ScratchpadItem]:
    return [item for item in items if not item.done]


def add_item(items: List[ScratchpadItem], text: str, meta: str = "") -> ScratchpadItem:
    item = ScratchpadItem(done=False, text=text, meta=meta)
    items.append(item)
    return item


def set_done(items: List[ScratchpadItem], needle: str, done: bool) -> bool:
    """Flip the first item in the opposite state whose text contains needle.

    Matching is case-insensitive. Returns False when nothing matched.
    """
    needle = needle.lower()
    for item in items:
        if item.done != done and needle in item.text.lower():
            item.done = done
            return True
    return False


def clear_done(items: List[ScratchpadItem]) -> Tuple[List[ScratchpadItem], int]:
    """Drop completed items. Returns the remaining items and how many were removed."""
    remaining = open_items(items)
    return remaining, len(items) - len(remaining)
