"""Query editor session: wires UI messages to the engine and the history.

Each inbound message is handled to completion before the next one. Errors
the user should see (bad script, bad document, failed write) are turned
into an outbound ``result`` message carrying ``error``; they never escape
``handle``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from json_query_tools.documents import read_json_document
from json_query_tools.engine import (
    EMPTY_RESULT_WARNING,
    ScriptRunner,
    evaluate,
    make_require,
    stringify,
)
from json_query_tools.errors import DocumentError, QueryToolsError
from json_query_tools.history import HistoryStore
from json_query_tools.models import (
    AiErrorMessage,
    AiMessage,
    ConfirmDeleteMessage,
    HydrateMessage,
    InboundMessage,
    InsertMessage,
    OutboundMessage,
    ReadyMessage,
    RebindMessage,
    RenameHistoryItemMessage,
    ResultMessage,
    RunMessage,
    SaveMessage,
    ToggleFavoriteMessage,
    UseMessage,
)
from json_query_tools.templates import confirm_delete_text

_log = logging.getLogger("json_query_tools")

_INBOUND = TypeAdapter(InboundMessage)

AI_UNAVAILABLE = "AI query generation is not available"


class Prompter(Protocol):
    """Asks the user for input the session cannot decide on its own."""

    def ask_name(self, message: RenameHistoryItemMessage) -> str | None:
        """Return the new name, or None when the user cancelled."""
        ...

    def confirm_delete(self, text: str, message: ConfirmDeleteMessage) -> bool: ...


class MessagePrompter:
    """Takes answers from fields carried on the message itself."""

    def ask_name(self, message: RenameHistoryItemMessage) -> str | None:
        return message.new_name

    def confirm_delete(self, text: str, message: ConfirmDeleteMessage) -> bool:
        return message.confirm


class QueryEditorSession:
    def __init__(
        self,
        store: HistoryStore,
        post: Callable[[OutboundMessage], None],
        prompter: Prompter | None = None,
        target: str | Path | None = None,
        runner: ScriptRunner | None = None,
    ) -> None:
        self.store = store
        self.post = post
        self.prompter = prompter or MessagePrompter()
        self.target = Path(target) if target is not None else None
        self.runner = runner

    def set_target(self, target: str | Path | None) -> None:
        self.target = Path(target) if target is not None else None

    def history_snapshot(self) -> list[dict[str, Any]]:
        return [e.to_wire() for e in self.store.list()]

    def send_history(self) -> None:
        self.post(HydrateMessage(history=self.history_snapshot()))

    def handle(self, raw: dict[str, Any] | InboundMessage) -> None:
        """Handle one inbound message, posting zero or more replies."""
        if isinstance(raw, dict):
            try:
                message = _INBOUND.validate_python(raw)
            except PydanticValidationError as e:
                self.post(ResultMessage(error=f"Invalid message: {e}"))
                return
        else:
            message = raw

        try:
            self._dispatch(message)
        except QueryToolsError as e:
            _log.error("Message '%s' failed: %s", message.type, e)
            self.post(ResultMessage(error=str(e)))

    def _dispatch(self, message: InboundMessage) -> None:
        match message:
            case ReadyMessage():
                self.send_history()
            case RebindMessage():
                if message.document is not None:
                    self.set_target(message.document)
                self.send_history()
            case UseMessage():
                self.post(InsertMessage(expr=message.expr))
            case RunMessage():
                self._run(message)
            case SaveMessage():
                if message.expr.strip():
                    self.store.upsert(message.expr)
                self.send_history()
            case ToggleFavoriteMessage():
                if self.store.toggle_favorite(message.expr):
                    self.send_history()
            case RenameHistoryItemMessage():
                self._rename(message)
            case ConfirmDeleteMessage():
                self._delete(message)
            case AiMessage():
                self.post(AiErrorMessage(error=AI_UNAVAILABLE))

    def _run(self, message: RunMessage) -> None:
        if self.target is None:
            raise DocumentError(
                "No target JSON file is bound. Send 'rebind' with a document path."
            )
        data = read_json_document(self.target)
        result = evaluate(
            data,
            message.expr,
            {"require": make_require(self.target)},
            runner=self.runner,
        )
        if message.save and message.expr.strip():
            self.store.upsert(message.expr)
            self.send_history()
        self.post(ResultMessage(
            text=stringify(result.value),
            data=result.value,
            warning=EMPTY_RESULT_WARNING if result.empty_result else None,
        ))

    def _rename(self, message: RenameHistoryItemMessage) -> None:
        entry = self.store.get(message.full_expr)
        if entry is None:
            return
        new_name = self.prompter.ask_name(message)
        if new_name is None:
            return
        if self.store.rename(message.full_expr, new_name):
            self.send_history()

    def _delete(self, message: ConfirmDeleteMessage) -> None:
        entry = self.store.get(message.full_expr)
        if entry is None:
            return
        if not self.prompter.confirm_delete(confirm_delete_text(entry.expression), message):
            return
        if self.store.delete(message.full_expr):
            self.send_history()
