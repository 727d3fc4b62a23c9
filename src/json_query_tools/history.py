"""Persistent, capacity-bounded history of evaluated expressions.

The expression text is the identity key: at most one entry exists per
expression. Storage order carries recency (tail = most recently touched).
Every mutating call re-reads the persisted blob, applies one change and
writes the whole collection back, so there is no long-lived in-memory copy
to go stale when another session writes to the same state.
"""

from __future__ import annotations

import logging
from typing import Any

import jsonschema
from pydantic import ValidationError as PydanticValidationError

from json_query_tools import query_logger
from json_query_tools.errors import PersistenceError
from json_query_tools.models import HistoryEntry
from json_query_tools.storage import StateStore

_log = logging.getLogger("json_query_tools")

HISTORY_KEY = "jsonQueryTools.history"
HISTORY_LIMIT = 200

# Accepts the pre-favorites shape (bare strings) and the structured shape,
# including the older ``expr``/``name`` keys.
HISTORY_BLOB_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "anyOf": [
            {"type": "string"},
            {
                "type": "object",
                "properties": {
                    "expression": {"type": "string"},
                    "expr": {"type": "string"},
                    "isFavorite": {"type": "boolean"},
                    "displayName": {"type": ["string", "null"]},
                    "name": {"type": ["string", "null"]},
                },
                "anyOf": [
                    {"required": ["expression"]},
                    {"required": ["expr"]},
                ],
            },
        ]
    },
}


# ── Pure helpers ─────────────────────────────────────────────────


def normalize_history(raw: Any) -> list[HistoryEntry]:
    """Convert a persisted blob into structured entries.

    Bare strings become unfavorited entries. Structured items pass through
    unchanged, so applying this to already-normalized data is a no-op.

    Raises:
        PersistenceError: If the blob matches neither accepted shape.
    """
    if raw is None:
        return []
    try:
        jsonschema.validate(instance=raw, schema=HISTORY_BLOB_SCHEMA)
    except jsonschema.ValidationError as e:
        raise PersistenceError(f"Stored history is malformed: {e.message}") from e

    entries: list[HistoryEntry] = []
    for item in raw:
        if isinstance(item, str):
            entries.append(HistoryEntry(expression=item, is_favorite=False))
            continue
        try:
            entries.append(HistoryEntry.model_validate(item))
        except PydanticValidationError as e:
            raise PersistenceError(f"Stored history entry is malformed: {e}") from e
    return entries


def evict(
    entries: list[HistoryEntry], capacity: int
) -> tuple[list[HistoryEntry], list[HistoryEntry]]:
    """Trim *entries* down to *capacity*.

    Oldest non-favorites go first; favorites are only taken, oldest first,
    when removing every non-favorite still leaves the list too long.

    Returns:
        ``(survivors, evicted)``, both in storage order.
    """
    needed = len(entries) - capacity
    if needed <= 0:
        return list(entries), []

    doomed: set[int] = set()
    for idx, entry in enumerate(entries):
        if len(doomed) == needed:
            break
        if not entry.is_favorite:
            doomed.add(idx)
    for idx, entry in enumerate(entries):
        if len(doomed) == needed:
            break
        if entry.is_favorite:
            doomed.add(idx)

    survivors = [e for i, e in enumerate(entries) if i not in doomed]
    evicted = [e for i, e in enumerate(entries) if i in doomed]
    return survivors, evicted


def presentation_order(entries: list[HistoryEntry]) -> list[HistoryEntry]:
    """Order entries for display without touching storage order.

    Favorites come first: named ones alphabetically, then unnamed ones in
    storage order. Non-favorites follow, most recent first.
    """
    favorites = [e for e in entries if e.is_favorite]
    others = [e for e in entries if not e.is_favorite]

    def _name_key(entry: HistoryEntry) -> tuple[int, str]:
        name = (entry.display_name or "").strip()
        if name:
            return (0, name.casefold())
        return (1, "")

    # sorted() is stable, so unnamed favorites keep their relative order.
    return sorted(favorites, key=_name_key) + list(reversed(others))


def matches_filter(entry: HistoryEntry, filter_text: str) -> bool:
    if not filter_text.strip():
        return True
    needle = filter_text.casefold()
    if needle in entry.expression.casefold():
        return True
    return bool(entry.display_name) and needle in entry.display_name.casefold()


# ── Store ────────────────────────────────────────────────────────


class HistoryStore:
    """Bounded, deduplicated, favorite-aware expression history.

    Not-found conditions are reported as ``False`` / ``None``. Only
    persistence failures raise (``PersistenceError``).
    """

    def __init__(
        self,
        state: StateStore,
        key: str = HISTORY_KEY,
        capacity: int = HISTORY_LIMIT,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._state = state
        self._key = key
        self.capacity = capacity

    def _load(self) -> list[HistoryEntry]:
        return normalize_history(self._state.get(self._key, []))

    def _save(self, entries: list[HistoryEntry]) -> None:
        self._state.update(self._key, [e.to_wire() for e in entries])

    def _find(self, entries: list[HistoryEntry], expression: str) -> int:
        for idx, entry in enumerate(entries):
            if entry.expression == expression:
                return idx
        return -1

    # ── Mutations ────────────────────────────────────────────────

    def upsert(self, expression: str) -> HistoryEntry:
        """Insert *expression* at the tail, or move an existing entry there.

        An existing entry keeps its favorite flag and name. Evicts when the
        collection grows past capacity, then persists.
        """
        entries = self._load()
        idx = self._find(entries, expression)
        existed = idx != -1
        if existed:
            entry = entries[idx]
            entries = [e for e in entries if e.expression != expression]
        else:
            entry = HistoryEntry(expression=expression, is_favorite=False)
        entries.append(entry)

        if len(entries) > self.capacity:
            entries, evicted = evict(entries, self.capacity)
            favorites_evicted = sum(1 for e in evicted if e.is_favorite)
            if favorites_evicted:
                _log.warning(
                    "History full: evicted %d favorite(s) to stay within %d entries",
                    favorites_evicted,
                    self.capacity,
                )
            query_logger.log_history_evict(len(evicted), favorites_evicted)

        self._save(entries)
        query_logger.log_history_upsert(expression, existed, len(entries))
        return entry

    def toggle_favorite(self, expression: str) -> bool:
        entries = self._load()
        idx = self._find(entries, expression)
        if idx == -1:
            return False
        entry = entries[idx]
        if entry.is_favorite:
            # A name implies a favorite, so unfavoriting drops the name.
            entries[idx] = entry.model_copy(
                update={"is_favorite": False, "display_name": None}
            )
        else:
            entries[idx] = entry.model_copy(update={"is_favorite": True})
        self._save(entries)
        return True

    def rename(self, expression: str, new_name: str) -> bool:
        """Set the display name of an entry.

        A non-blank name also favorites the entry. A blank name clears the
        name but leaves the favorite flag alone; it never deletes the entry.
        """
        entries = self._load()
        idx = self._find(entries, expression)
        if idx == -1:
            return False
        entry = entries[idx]
        if new_name.strip():
            entries[idx] = entry.model_copy(
                update={"display_name": new_name, "is_favorite": True}
            )
        else:
            entries[idx] = entry.model_copy(update={"display_name": None})
        self._save(entries)
        return True

    def delete(self, expression: str) -> bool:
        """Remove an entry regardless of its favorite flag."""
        entries = self._load()
        idx = self._find(entries, expression)
        if idx == -1:
            return False
        del entries[idx]
        self._save(entries)
        query_logger.log_history_delete(expression)
        return True

    # ── Queries ──────────────────────────────────────────────────

    def get(self, expression: str) -> HistoryEntry | None:
        entries = self._load()
        idx = self._find(entries, expression)
        return entries[idx] if idx != -1 else None

    def entries(self) -> list[HistoryEntry]:
        """All entries in storage order, oldest first."""
        return self._load()

    def list(self, filter_text: str = "") -> list[HistoryEntry]:
        """Entries matching *filter_text*, in presentation order."""
        return presentation_order(
            [e for e in self._load() if matches_filter(e, filter_text)]
        )

    def __len__(self) -> int:
        return len(self._load())
