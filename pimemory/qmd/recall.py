"""Per-turn relevance search.

search_relevant_memories() is total: every failure (tool missing, no
collection, timeout, bad output, nothing usable) resolves to "".
"""

import re
from concurrent.futures import Executor, TimeoutError as FutureTimeout
from typing import List, Union

from ..constants import QmdConst
from ..security import get_logger
from .client import QmdClient
from .protocol import QmdError, SearchMode, SearchOutcome, SearchSnippet

logger = get_logger("recall")

CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
SNIPPET_DIVIDER = "\n\n---\n\n"


def sanitize_query(prompt: str, max_chars: int = QmdConst.RECALL_MAX_QUERY_CHARS) -> str:
    """Replace control characters, trim, and clip to max_chars."""
    return CONTROL_CHARS.sub(" ", prompt).strip()[:max_chars]


def run_search(
    client: QmdClient,
    executor: Executor,
    mode: Union[SearchMode, str],
    query: str,
    limit: int,
    timeout: float
) -> SearchOutcome:
    """Run a search on executor and wait at most timeout seconds.

    On timeout a queued search is cancelled; one already running is
    abandoned and stays bounded by the subprocess timeout.
    """
    future = executor.submit(client.search, mode, query, limit)
    try:
        return SearchOutcome.success(future.result(timeout=timeout))
    except FutureTimeout:
        future.cancel()
        return SearchOutcome.failure(f"timeout after {timeout}s")
    except QmdError as e:
        return SearchOutcome.failure(str(e))


def format_snippets(snippets: List[SearchSnippet]) -> str:
    """Render usable snippets as an optional _path_ line plus content."""
    blocks = []
    for snippet in snippets:
        if not snippet.usable:
            continue
        text = snippet.content.strip()
        blocks.append(f"_{snippet.path}_\n{text}" if snippet.path else text)
    return SNIPPET_DIVIDER.join(blocks)


def search_relevant_memories(
    prompt: str,
    client: QmdClient,
    executor: Executor,
    available: bool,
    mode: Union[SearchMode, str] = SearchMode.KEYWORD,
    limit: int = QmdConst.RECALL_LIMIT,
    timeout: float = QmdConst.RECALL_TIMEOUT
) -> str:
    """Search memory for snippets relevant to prompt; "" on any failure."""
    if not available:
        return ""

    query = sanitize_query(prompt)
    if not query:
        return ""

    try:
        if not client.check_collection():
            return ""

        outcome = run_search(client, executor, mode, query, limit, timeout)
        if not outcome.ok:
            logger.warning("recall_failed", outcome.error, query=query)
            return ""

        return format_snippets(outcome.snippets)
    except Exception as e:
        logger.error("recall_error", str(e), query=query)
        return ""
