"""Durable key-value state for the history blob.

A ``StateStore`` holds JSON values under string keys. Implementations must
not cache: every ``get`` reflects the latest persisted state so that two
sessions sharing one file see each other's writes.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from json_query_tools import query_logger
from json_query_tools.errors import PersistenceError


class StateStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def update(self, key: str, value: Any) -> None: ...


class MemoryStateStore:
    """Dict-backed store. Values are JSON round-tripped on write."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def update(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for '{key}' is not JSON-serializable: {e}") from e


class JsonFileStateStore:
    """All keys live in one JSON object file, replaced atomically on write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise PersistenceError(f"State file {self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Cannot read state file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise PersistenceError(
                f"State file {self.path} must contain a JSON object, got {type(raw).__name__}"
            )
        return raw

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def update(self, key: str, value: Any) -> None:
        state = self._read_all()
        state[key] = value
        try:
            content = json.dumps(state, ensure_ascii=False, indent=2) + "\n"
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for '{key}' is not JSON-serializable: {e}") from e
        try:
            self._write(content)
        except OSError as e:
            query_logger.log_persistence_error(key, str(e))
            raise PersistenceError(f"Failed to write state file {self.path}: {e}") from e

    def _write(self, content: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Temp file in the same directory so os.replace stays atomic.
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        tmp_path = Path(tmp_name)
        try:
            os.chmod(tmp_name, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
