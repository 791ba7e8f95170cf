"""Memory Store - flat-file layout for long-term memory, scratchpad and daily logs

Layout (under the memory directory):

    MEMORY.md              curated long-term memory
    SCRATCHPAD.md          checklist of things to keep in mind
    daily/YYYY-MM-DD.md    append-only daily log

Every write rewrites the whole file. There is no locking: the host runs
tool calls for one session serially, and the last writer wins otherwise.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from ..constants import Defaults, MemoryFiles
from ..security import get_logger

logger = get_logger("memory_store")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def short_session_id(session_id: str) -> str:
    return session_id[:Defaults.SESSION_ID_CHARS]


class MemoryStore:
    """File access for the memory directory."""

    def __init__(self, memory_dir: Path, clock: Optional[Clock] = None):
        self.memory_dir = Path(memory_dir)
        self.clock = clock or utc_now

    @property
    def long_term_path(self) -> Path:
        return self.memory_dir / MemoryFiles.LONG_TERM

    @property
    def scratchpad_path(self) -> Path:
        return self.memory_dir / MemoryFiles.SCRATCHPAD

    @property
    def daily_dir(self) -> Path:
        return self.memory_dir / MemoryFiles.DAILY_DIR

    def daily_path(self, date: str) -> Path:
        return self.daily_dir / MemoryFiles.daily(date)

    def ensure_dirs(self) -> None:
        self.daily_dir.mkdir(parents=True, exist_ok=True)

    def today(self) -> str:
        return self.clock().strftime("%Y-%m-%d")

    def yesterday(self) -> str:
        return (self.clock() - timedelta(days=1)).strftime("%Y-%m-%d")

    def timestamp(self) -> str:
        """Current time as YYYY-MM-DD HH:MM:SS."""
        return self.clock().strftime("%Y-%m-%d %H:%M:%S")

    def read(self, path: Path) -> Optional[str]:
        """Read a UTF-8 file; None when it is missing or unreadable."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("read_failed", str(e), path=str(path))
            return None

    def write(self, path: Path, content: str) -> None:
        self.ensure_dirs()
        path.write_text(content, encoding="utf-8")

    def append_entry(self, path: Path, entry: str) -> str:
        """Append entry after a blank line (none when the file is empty). Returns the new content."""
        existing = self.read(path) or ""
        separator = "\n\n" if existing.strip() else ""
        content = existing + separator + entry
        self.write(path, content)
        return content

    def read_long_term(self) -> Optional[str]:
        return self.read(self.long_term_path)

    def read_scratchpad(self) -> Optional[str]:
        return self.read(self.scratchpad_path)

    def read_daily(self, date: str) -> Optional[str]:
        return self.read(self.daily_path(date))

    def list_daily(self) -> List[str]:
        """Daily log file names, newest first."""
        if not self.daily_dir.is_dir():
            return []
        names = [p.name for p in self.daily_dir.iterdir() if p.is_file() and p.suffix == ".md"]
        return sorted(names, reverse=True)
