"""qmd Protocol - Data structures for memory search"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SearchMode(Enum):
    """qmd search modes and the subcommand each one runs."""
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    DEEP = "deep"

    @property
    def subcommand(self) -> str:
        return {
            SearchMode.KEYWORD: "search",
            SearchMode.SEMANTIC: "vsearch",
            SearchMode.DEEP: "query",
        }[self]


@dataclass
class SearchSnippet:
    """A single normalized search hit."""
    content: str
    path: Optional[str] = None
    score: Optional[float] = None

    @property
    def usable(self) -> bool:
        return bool(self.content.strip())


@dataclass
class SearchOutcome:
    """Result of one search call: snippets on success, a reason on failure."""
    snippets: List[SearchSnippet] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, snippets: List[SearchSnippet]) -> 'SearchOutcome':
        return cls(snippets=snippets)

    @classmethod
    def failure(cls, reason: str) -> 'SearchOutcome':
        return cls(error=reason)


class QmdError(Exception):
    """Base exception for qmd operations."""
    pass


class QmdTimeout(QmdError):
    """qmd command timed out."""
    pass


class QmdUnavailable(QmdError):
    """qmd CLI not available."""
    pass


class QmdParseError(QmdError):
    """qmd output contained JSON that could not be decoded."""
    pass
