"""qmd Integration - keyword/semantic search over the memory directory

Wraps the qmd CLI (https://github.com/tobi/qmd). qmd is optional: every
memory tool except memory_search works without it.
"""

from .client import QmdClient
from .protocol import SearchMode, SearchSnippet, SearchOutcome, QmdError
from .normalize import normalize_results
from .recall import search_relevant_memories

__all__ = [
    'QmdClient', 'SearchMode', 'SearchSnippet', 'SearchOutcome', 'QmdError',
    'normalize_results', 'search_relevant_memories'
]
