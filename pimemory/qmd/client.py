"""qmd Client - Interface to the qmd search CLI

Provides programmatic access to:
- Availability detection (qmd status)
- Collection management (list, add, path contexts)
- Search (keyword BM25, semantic, hybrid rerank)
- Reindexing (qmd update)
"""

import json
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from ..constants import QmdConst
from ..security import get_logger
from .normalize import normalize_results
from .protocol import (
    QmdError, QmdTimeout, QmdUnavailable, SearchMode, SearchSnippet
)

logger = get_logger("qmd")


class QmdClient:
    """Client for the qmd memory search tool.

    Usage:
        client = QmdClient(memory_dir=Path("~/.pi/agent/memory").expanduser())

        if client.is_available() and not client.check_collection():
            client.setup_collection()

        snippets = client.search(SearchMode.KEYWORD, "auth strategy", limit=3)
    """

    def __init__(
        self,
        memory_dir: Path,
        collection: str = QmdConst.COLLECTION,
        binary: str = QmdConst.BINARY
    ):
        self.memory_dir = Path(memory_dir)
        self.collection = collection
        self.binary = binary

    def _run_command(self, args: List[str], timeout: float) -> subprocess.CompletedProcess:
        """Run a qmd command.

        Raises:
            QmdUnavailable: If the binary is not installed
            QmdTimeout: If the command outlives timeout
        """
        cmd = [self.binary] + args
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError as e:
            raise QmdUnavailable(f"{self.binary} not found") from e
        except subprocess.TimeoutExpired as e:
            raise QmdTimeout(f"Timeout after {timeout}s: {' '.join(args[:1])}") from e
        except OSError as e:
            raise QmdError(f"Failed to run {self.binary}: {e}") from e

    def is_available(self) -> bool:
        """Check if qmd is installed and answers `qmd status`."""
        try:
            result = self._run_command(["status"], timeout=QmdConst.STATUS_TIMEOUT)
        except QmdError:
            return False
        return result.returncode == 0

    def check_collection(self, name: Optional[str] = None) -> bool:
        """Check whether a collection is registered."""
        name = name or self.collection
        try:
            result = self._run_command(
                ["collection", "list", "--json"], timeout=QmdConst.COLLECTION_TIMEOUT
            )
        except QmdError:
            return False
        if result.returncode != 0:
            return False

        try:
            collections = json.loads(result.stdout)
        except json.JSONDecodeError:
            return name in result.stdout

        if not isinstance(collections, list):
            return name in result.stdout

        for entry in collections:
            if isinstance(entry, str) and entry == name:
                return True
            if isinstance(entry, dict) and entry.get("name") == name:
                return True
        return False

    def setup_collection(self) -> bool:
        """Register the memory directory as a collection, plus path contexts.

        Returns False when the collection could not be added. Path contexts
        are best-effort; they may already exist.
        """
        try:
            result = self._run_command(
                ["collection", "add", str(self.memory_dir), "--name", self.collection],
                timeout=QmdConst.COLLECTION_TIMEOUT
            )
        except QmdError as e:
            logger.warning("collection_add_failed", str(e), collection=self.collection)
            return False
        if result.returncode != 0:
            logger.warning("collection_add_failed", result.stderr.strip(), collection=self.collection)
            return False

        for ctx_path, description in QmdConst.PATH_CONTEXTS:
            try:
                self._run_command(
                    ["context", "add", ctx_path, description, "-c", self.collection],
                    timeout=QmdConst.COLLECTION_TIMEOUT
                )
            except QmdError as e:
                logger.debug("context_add_failed", str(e), path=ctx_path)

        return True

    def search(
        self,
        mode: Union[SearchMode, str],
        query: str,
        limit: int = QmdConst.SEARCH_DEFAULT_LIMIT
    ) -> List[SearchSnippet]:
        """Search the collection.

        Raises:
            QmdError: On non-zero exit, timeout, missing binary or bad JSON
        """
        mode = SearchMode(mode)
        args = [mode.subcommand, "--json", "-c", self.collection, "-n", str(limit), query]

        result = self._run_command(args, timeout=QmdConst.SEARCH_TIMEOUT)
        if result.returncode != 0:
            message = (result.stderr or "").strip() or f"exit code {result.returncode}"
            raise QmdError(f"Search failed: {message}")

        return normalize_results(result.stdout)

    def update(self) -> bool:
        """Reindex the collection. Failures are logged, not raised."""
        try:
            result = self._run_command(["update"], timeout=QmdConst.UPDATE_TIMEOUT)
        except QmdError as e:
            logger.warning("update_failed", str(e))
            return False
        if result.returncode != 0:
            logger.warning("update_failed", result.stderr.strip())
            return False
        return True

    def install_instructions(self) -> str:
        return "\n".join([
            "memory_search requires qmd.",
            "",
            "Install qmd (requires Bun):",
            f"  bun install -g {QmdConst.REPO_URL}",
            "  # ensure ~/.bun/bin is in your PATH",
            "",
            "Then set up the collection (one-time):",
            f"  qmd collection add {self.memory_dir} --name {self.collection}",
            "  qmd embed",
        ])
