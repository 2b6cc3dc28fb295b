from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ProviderKind(StrEnum):
    GEMINI = "gemini"


@dataclass(frozen=True, slots=True)
class FunctionDeclaration:
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ToolCall:
    tool_call_id: str
    name: str
    arguments: dict[str, Any]
    raw_arguments: str
    thought_signature: str | None = None


@dataclass(frozen=True, slots=True)
class LLMUsage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class LLMResponse:
    provider_kind: ProviderKind
    profile_id: str
    model: str
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: LLMUsage | None = None
    stop_reason: str | None = None
    request_id: str | None = None
    # Model turn exactly as returned, replayed into the conversation history.
    raw_content: dict[str, Any] | None = None
