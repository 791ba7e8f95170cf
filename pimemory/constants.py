"""Constants, file names and budgets for pi-memory."""


class MemoryFiles:
    """File layout under the memory directory."""

    LONG_TERM = "MEMORY.md"
    SCRATCHPAD = "SCRATCHPAD.md"
    DAILY_DIR = "daily"
    CONFIG = "config.yaml"

    @classmethod
    def daily(cls, date: str) -> str:
        return f"{date}.md"


class ContextLimits:
    """Per-section and overall budgets for injected context.

    The five section caps sum to 14500 chars, below CONTEXT_MAX_CHARS,
    leaving room for labels, dividers and truncation notes.
    """

    LONG_TERM_MAX_CHARS = 4_000
    LONG_TERM_MAX_LINES = 150
    SCRATCHPAD_MAX_CHARS = 2_000
    SCRATCHPAD_MAX_LINES = 120
    DAILY_MAX_CHARS = 3_000
    DAILY_MAX_LINES = 120
    SEARCH_MAX_CHARS = 2_500
    SEARCH_MAX_LINES = 80
    CONTEXT_MAX_CHARS = 16_000

    RESPONSE_PREVIEW_MAX_CHARS = 4_000
    RESPONSE_PREVIEW_MAX_LINES = 120

    HANDOFF_MAX_ITEMS = 30
    HANDOFF_LOG_TAIL_LINES = 15


class QmdConst:
    """qmd collection and subprocess settings."""

    BINARY = "qmd"
    COLLECTION = "pi-memory"
    REPO_URL = "https://github.com/tobi/qmd"

    STATUS_TIMEOUT = 5
    COLLECTION_TIMEOUT = 10
    SEARCH_TIMEOUT = 60
    UPDATE_TIMEOUT = 30

    RECALL_LIMIT = 3
    RECALL_TIMEOUT = 3.0
    RECALL_MAX_QUERY_CHARS = 200

    SEARCH_DEFAULT_LIMIT = 5

    PATH_CONTEXTS = [
        ("/daily", "Daily append-only work logs organized by date"),
        ("/", "Curated long-term memory: decisions, preferences, facts, lessons"),
    ]


class UpdateMode:
    """How qmd reindexing is triggered after writes."""

    BACKGROUND = "background"
    MANUAL = "manual"
    OFF = "off"

    ALL = (BACKGROUND, MANUAL, OFF)


class RedisKeys:
    """Redis key patterns for the hook result log."""

    HOOKS_LOG = "pimemory:hooks:log"
    HOOKS_LOG_MAX = 100

    @classmethod
    def hooks_log(cls, session_id: str) -> str:
        return f"{cls.HOOKS_LOG}:{session_id}"


class Defaults:
    """Default configuration values."""

    REINDEX_DEBOUNCE_SECONDS = 0.5
    SESSION_ID_CHARS = 8
    LOG_LEVEL = "warning"
