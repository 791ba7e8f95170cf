"""Flat-file memory: budgets, scratchpad format, store, context assembly and tools."""

from .budget import TruncateMode, PreviewResult, build_preview, truncate_lines, truncate_text
from .scratchpad import ScratchpadItem, parse_scratchpad, serialize_scratchpad
from .store import MemoryStore
from .context import build_memory_context
from .tools import MemoryTools, ToolResult

__all__ = [
    'TruncateMode', 'PreviewResult', 'build_preview', 'truncate_lines', 'truncate_text',
    'ScratchpadItem', 'parse_scratchpad', 'serialize_scratchpad',
    'MemoryStore', 'build_memory_context', 'MemoryTools', 'ToolResult'
]
