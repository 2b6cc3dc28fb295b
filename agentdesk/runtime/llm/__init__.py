from __future__ import annotations

from .chat import ChatSession, GeminiChat, GeminiModelService, ModelService
from .config import ModelProfile
from .errors import (
    INVALID_API_KEY_MESSAGE,
    CredentialResolutionError,
    LLMErrorCode,
    LLMRequestError,
    ProviderAdapterError,
    error_event_payload,
    is_invalid_api_key_error,
)
from .types import FunctionDeclaration, LLMResponse, ToolCall

__all__ = [
    "INVALID_API_KEY_MESSAGE",
    "ChatSession",
    "CredentialResolutionError",
    "FunctionDeclaration",
    "GeminiChat",
    "GeminiModelService",
    "LLMErrorCode",
    "LLMRequestError",
    "LLMResponse",
    "ModelProfile",
    "ModelService",
    "ProviderAdapterError",
    "ToolCall",
    "error_event_payload",
    "is_invalid_api_key_error",
]
