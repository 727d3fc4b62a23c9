"""json-query-tools: run scripts against JSON documents, keep a query history."""

from json_query_tools.engine import evaluate, get_runner, make_require, stringify
from json_query_tools.errors import (
    ConfigError,
    DocumentError,
    EvaluationError,
    PersistenceError,
    QueryToolsError,
)
from json_query_tools.history import (
    HISTORY_KEY,
    HISTORY_LIMIT,
    HistoryStore,
    evict,
    normalize_history,
    presentation_order,
)
from json_query_tools.models import EvaluationResult, HistoryEntry
from json_query_tools.query_logger import configure_logging
from json_query_tools.session import QueryEditorSession
from json_query_tools.storage import JsonFileStateStore, MemoryStateStore

__all__ = [
    "configure_logging",
    "ConfigError",
    "DocumentError",
    "evaluate",
    "EvaluationError",
    "EvaluationResult",
    "evict",
    "get_runner",
    "HISTORY_KEY",
    "HISTORY_LIMIT",
    "HistoryEntry",
    "HistoryStore",
    "JsonFileStateStore",
    "make_require",
    "MemoryStateStore",
    "normalize_history",
    "PersistenceError",
    "presentation_order",
    "QueryEditorSession",
    "QueryToolsError",
    "stringify",
]
