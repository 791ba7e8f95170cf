"""Memory configuration - defaults, YAML file and environment overrides"""

import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .constants import Defaults, MemoryFiles, QmdConst, UpdateMode

DEFAULT_MEMORY_DIR = Path("~/.pi/agent/memory").expanduser()

RECALL_MODES = ("keyword", "semantic", "deep")

TRUE_STRINGS = ("1", "true", "yes", "on")


class ConfigError(Exception):
    """Configuration file could not be used."""
    pass


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _positive(value: Any, default: Union[int, float], kind: type, allow_zero: bool = False):
    """Coerce value with kind; fall back to default when it is not a usable positive number."""
    if isinstance(value, bool):
        return default
    try:
        number = kind(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0 or (number == 0 and not allow_zero):
        return default
    return number


@dataclass
class MemoryConfig:
    """Complete memory configuration."""
    memory_dir: Path = field(default_factory=lambda: DEFAULT_MEMORY_DIR)
    qmd_update: str = UpdateMode.BACKGROUND
    no_search: bool = False
    recall_mode: str = "keyword"
    recall_limit: int = QmdConst.RECALL_LIMIT
    recall_timeout: float = QmdConst.RECALL_TIMEOUT
    collection: str = QmdConst.COLLECTION
    qmd_binary: str = QmdConst.BINARY
    debounce_seconds: float = Defaults.REINDEX_DEBOUNCE_SECONDS
    redis_url: Optional[str] = None

    def __post_init__(self):
        self.memory_dir = Path(self.memory_dir).expanduser()
        self.qmd_update = str(self.qmd_update).lower()
        if self.qmd_update not in UpdateMode.ALL:
            self.qmd_update = UpdateMode.BACKGROUND
        self.recall_mode = str(self.recall_mode).lower()
        if self.recall_mode not in RECALL_MODES:
            self.recall_mode = "keyword"
        self.no_search = _as_bool(self.no_search)
        self.recall_limit = int(_positive(self.recall_limit, QmdConst.RECALL_LIMIT, int))
        self.recall_timeout = _positive(self.recall_timeout, QmdConst.RECALL_TIMEOUT, float)
        self.debounce_seconds = _positive(
            self.debounce_seconds, Defaults.REINDEX_DEBOUNCE_SECONDS, float, allow_zero=True
        )

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        env: Optional[Dict[str, str]] = None
    ) -> 'MemoryConfig':
        """Load config from YAML (if present) then apply environment overrides."""
        env = os.environ if env is None else env
        memory_dir = Path(env.get("PI_MEMORY_DIR") or DEFAULT_MEMORY_DIR).expanduser()
        config_path = Path(path) if path else memory_dir / MemoryFiles.CONFIG

        data: Dict[str, Any] = {}
        if config_path.exists():
            data = cls._read_yaml(config_path)

        data.update(cls._env_overrides(env))
        return cls(**data)

    @classmethod
    def _read_yaml(cls, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        section = raw.get("memory", raw) if isinstance(raw, dict) else None
        if not isinstance(section, dict):
            raise ConfigError(f"Expected a mapping in {path}")

        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
        return dict(section)

    @staticmethod
    def _env_overrides(env: Dict[str, str]) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        if env.get("PI_MEMORY_DIR"):
            overrides["memory_dir"] = env["PI_MEMORY_DIR"]
        if env.get("PI_MEMORY_QMD_UPDATE"):
            overrides["qmd_update"] = env["PI_MEMORY_QMD_UPDATE"]
        if "PI_MEMORY_NO_SEARCH" in env:
            overrides["no_search"] = env["PI_MEMORY_NO_SEARCH"] == "1"
        if env.get("PI_MEMORY_RECALL_MODE"):
            overrides["recall_mode"] = env["PI_MEMORY_RECALL_MODE"]
        if env.get("REDIS_URL"):
            overrides["redis_url"] = env["REDIS_URL"]
        return overrides


