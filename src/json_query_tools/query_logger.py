"""Structured JSON logging for evaluations and history changes.

Writes JSON-lines to disk so history mutations and failed evaluations
can be debugged after the fact. Each log entry is a single JSON object
on one line.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

_logger = logging.getLogger("json_query_tools.events")


def configure_logging(
    log_dir: str | Path, level: int = logging.DEBUG
) -> Path:
    """Set up event logging to write JSON-lines to a file.

    Args:
        log_dir: Directory to write ``query.log`` into.
        level: Logging level (default: DEBUG).

    Returns:
        Path of the log file.
    """
    log_path = Path(log_dir) / "query.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(str(log_path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    _logger.addHandler(handler)
    _logger.setLevel(level)
    return log_path


def _log(event: dict[str, Any]) -> None:
    _logger.info(json.dumps(event, default=str))


def _preview(expression: str) -> str:
    return expression[:200]


def log_evaluation_start(script: str, language: str) -> None:
    _log({
        "event": "evaluation_start",
        "script_preview": _preview(script),
        "language": language,
    })


def log_evaluation_complete(duration_ms: float, empty_result: bool) -> None:
    _log({
        "event": "evaluation_complete",
        "duration_ms": round(duration_ms, 2),
        "empty_result": empty_result,
    })


def log_evaluation_error(error: str) -> None:
    _log({"event": "evaluation_error", "error": error})


def log_history_upsert(expression: str, existed: bool, size: int) -> None:
    _log({
        "event": "history_upsert",
        "expression_preview": _preview(expression),
        "existed": existed,
        "size": size,
    })


def log_history_evict(evicted: int, favorites_evicted: int) -> None:
    _log({
        "event": "history_evict",
        "evicted": evicted,
        "favorites_evicted": favorites_evicted,
    })


def log_history_delete(expression: str) -> None:
    _log({"event": "history_delete", "expression_preview": _preview(expression)})


def log_persistence_error(key: str, error: str) -> None:
    _log({"event": "persistence_error", "key": key, "error": error})
