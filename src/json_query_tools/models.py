"""Pydantic models for history entries, evaluation results and messages.

All data structures live here. No business logic, just shapes.
Inbound messages use a discriminated union on the ``type`` field so
malformed UI messages fail at parse time.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ── History ──────────────────────────────────────────────────────


class HistoryEntry(BaseModel):
    """One stored expression plus its favorite flag and optional name.

    Serializes with the camelCase keys of the persisted blob. The older
    ``expr``/``name`` keys are still accepted on read.
    """

    model_config = ConfigDict(populate_by_name=True)

    expression: str = Field(
        validation_alias=AliasChoices("expression", "expr"),
        serialization_alias="expression",
    )
    is_favorite: bool = Field(
        default=False,
        validation_alias=AliasChoices("isFavorite", "is_favorite"),
        serialization_alias="isFavorite",
    )
    display_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "name", "display_name"),
        serialization_alias="displayName",
    )

    def to_wire(self) -> dict[str, Any]:
        """Structured blob shape; ``displayName`` is omitted when unset."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Evaluation ───────────────────────────────────────────────────


class EvaluationResult(BaseModel):
    value: Any = None
    empty_result: bool = False
    duration_ms: float = 0.0


# ── Inbound messages (UI → core) ─────────────────────────────────


class ReadyMessage(BaseModel):
    type: Literal["ready"]


class RebindMessage(BaseModel):
    type: Literal["rebind"]
    document: str | None = None


class UseMessage(BaseModel):
    type: Literal["use"]
    expr: str = ""


class RunMessage(BaseModel):
    type: Literal["run"]
    expr: str = ""
    save: bool = False


class SaveMessage(BaseModel):
    type: Literal["save"]
    expr: str = ""


class ToggleFavoriteMessage(BaseModel):
    type: Literal["toggleFavorite"]
    expr: str


class RenameHistoryItemMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["renameHistoryItem"]
    full_expr: str = Field(alias="fullExpr")
    current_name: str | None = Field(default=None, alias="currentName")
    # Answer to the name prompt when the host cannot prompt interactively.
    new_name: str | None = Field(default=None, alias="newName")


class ConfirmDeleteMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["confirmDelete"]
    full_expr: str = Field(alias="fullExpr")
    confirm: bool = False


class AiMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["getModels", "generateQuery"]


# Discriminated union: Pydantic picks the right model based on `type`
InboundMessage = Annotated[
    ReadyMessage
    | RebindMessage
    | UseMessage
    | RunMessage
    | SaveMessage
    | ToggleFavoriteMessage
    | RenameHistoryItemMessage
    | ConfirmDeleteMessage
    | AiMessage,
    Field(discriminator="type"),
]


# ── Outbound messages (core → UI) ────────────────────────────────


class HydrateMessage(BaseModel):
    type: Literal["hydrate"] = "hydrate"
    history: list[dict[str, Any]]


class ResultMessage(BaseModel):
    type: Literal["result"] = "result"
    text: str | None = None
    data: Any = None
    warning: str | None = None
    error: str | None = None


class InsertMessage(BaseModel):
    type: Literal["insert"] = "insert"
    expr: str


class AiErrorMessage(BaseModel):
    type: Literal["aiError"] = "aiError"
    error: str


OutboundMessage = HydrateMessage | ResultMessage | InsertMessage | AiErrorMessage
