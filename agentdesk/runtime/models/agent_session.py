from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .text_fields import optional_text, require_text
from .status import RunStatus

LABEL_MAX_CHARS = 40


def default_label(intent: str) -> str:
    text = str(intent or "").strip()
    if len(text) <= LABEL_MAX_CHARS:
        return text
    return text[:LABEL_MAX_CHARS] + "..."


class AgentSession(BaseModel):
    """Client-side durable record of one run (or chain of follow-ups) and its execution history."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, validate_assignment=True)

    id: str
    intent: str
    label: str = ""
    history: list[dict[str, Any]] = Field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING
    created_at: int
    last_accessed_at: int
    is_favorite: bool = False
    server_session_id: str | None = None

    @field_validator("id", "intent")
    @classmethod
    def _validate_required_str(cls, v: str, info) -> str:  # noqa: ANN001
        return require_text(v, field_name=info.field_name)

    @field_validator("server_session_id")
    @classmethod
    def _validate_server_session_id(cls, v: str | None) -> str | None:
        return optional_text(v) or None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
