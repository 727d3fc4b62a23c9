"""Tests for the JSON-lines event log."""

from __future__ import annotations

import json
import logging

import pytest

from json_query_tools import query_logger
from json_query_tools.engine import evaluate
from json_query_tools.errors import EvaluationError
from json_query_tools.history import HistoryStore
from json_query_tools.storage import MemoryStateStore


@pytest.fixture
def log_file(tmp_path):
    path = query_logger.configure_logging(tmp_path / "logs")
    yield path
    logger = logging.getLogger("json_query_tools.events")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def events(path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_configure_creates_directory(log_file):
    assert log_file.parent.is_dir()
    assert log_file.name == "query.log"


def test_evaluation_events(log_file):
    evaluate([1], "return data", {})
    with pytest.raises(EvaluationError):
        evaluate([1], "}{", {})
    kinds = [e["event"] for e in events(log_file)]
    assert kinds == [
        "evaluation_start",
        "evaluation_complete",
        "evaluation_start",
        "evaluation_error",
    ]


def test_history_events(log_file):
    store = HistoryStore(MemoryStateStore(), capacity=1)
    store.upsert("a")
    store.upsert("b")
    store.delete("b")
    logged = events(log_file)
    assert [e["event"] for e in logged] == [
        "history_upsert",
        "history_evict",
        "history_upsert",
        "history_delete",
    ]
    assert logged[1]["evicted"] == 1
    assert logged[1]["favorites_evicted"] == 0
