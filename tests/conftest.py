"""Shared pytest fixtures for pi-memory tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

try:
    import fakeredis
    FAKEREDIS_AVAILABLE = True
except ImportError:
    FAKEREDIS_AVAILABLE = False
    fakeredis = None

from pimemory.config import MemoryConfig
from pimemory.memory.store import MemoryStore

FIXED_NOW = datetime(2026, 3, 15, 9, 30, 0, tzinfo=timezone.utc)
TODAY = "2026-03-15"
YESTERDAY = "2026-03-14"


@pytest.fixture
def mock_redis():
    """Create a fake Redis client for testing."""
    if not FAKEREDIS_AVAILABLE:
        pytest.skip("fakeredis not installed")
    return fakeredis.FakeStrictRedis(decode_responses=True)


@pytest.fixture
def session_id():
    """Default test session ID (longer than the 8-char short form)."""
    return "sess1234abcdef"


@pytest.fixture
def memory_dir(tmp_path):
    """Empty memory directory."""
    return tmp_path / "memory"


@pytest.fixture
def store(memory_dir):
    """MemoryStore with a frozen clock."""
    return MemoryStore(memory_dir, clock=lambda: FIXED_NOW)


@pytest.fixture
def write_file(store):
    """Write a memory file relative to the memory directory."""
    def _write(relative: str, content: str) -> Path:
        path = store.memory_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def config(memory_dir):
    """Config pointing at the temp memory directory, with a short debounce."""
    return MemoryConfig(memory_dir=memory_dir, debounce_seconds=0.05)


@pytest.fixture
def mock_qmd():
    """A QmdClient stand-in that reports qmd as available with a collection."""
    qmd = MagicMock()
    qmd.is_available.return_value = True
    qmd.check_collection.return_value = True
    qmd.setup_collection.return_value = True
    qmd.search.return_value = []
    qmd.update.return_value = True
    qmd.install_instructions.return_value = "memory_search requires qmd."
    return qmd


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for qmd command tests."""
    with patch("subprocess.run") as mock:
        mock.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr=""
        )
        yield mock


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks slow-running tests"
    )
