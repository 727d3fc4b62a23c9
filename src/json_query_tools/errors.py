"""Custom exception hierarchy for json-query-tools.

All exceptions inherit from QueryToolsError so callers can catch broadly
or narrowly as needed. "Not found" is never an exception here: history
operations report it as a ``False``/``None`` return.
"""

from __future__ import annotations


class QueryToolsError(Exception):
    """Base for all json-query-tools errors."""


class EvaluationError(QueryToolsError):
    """A script failed to compile or raised while running."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class PersistenceError(QueryToolsError):
    """Reading or writing durable state failed."""


class DocumentError(QueryToolsError):
    """The target JSON document could not be loaded."""


class ConfigError(QueryToolsError):
    """Configuration file or environment values are invalid."""
