from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from .client_gemini import gemini_to_response
from .config import ModelProfile
from .errors import LLMErrorCode, LLMRequestError
from .providers.gemini import GeminiAdapter, text_part
from .secrets import resolve_api_key
from .types import FunctionDeclaration, LLMResponse

logger = logging.getLogger(__name__)

MessageInput = str | list[dict[str, Any]]


@runtime_checkable
class ChatSession(Protocol):
    """A stateful conversation; history is owned by the handle, not by callers."""

    def send_message(self, message: MessageInput) -> LLMResponse: ...


@runtime_checkable
class ModelService(Protocol):
    def start_chat(self, *, system_instruction: str, tools: list[FunctionDeclaration]) -> ChatSession: ...


class GeminiChat:
    def __init__(
        self,
        *,
        profile: ModelProfile,
        api_key: str,
        system_instruction: str | None,
        tools: list[FunctionDeclaration],
        http: httpx.Client,
    ) -> None:
        self._profile = profile
        self._api_key = api_key
        self._system_instruction = system_instruction
        self._tools = list(tools)
        self._http = http
        self._contents: list[dict[str, Any]] = []

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._contents)

    def send_message(self, message: MessageInput) -> LLMResponse:
        parts = [text_part(message)] if isinstance(message, str) else [dict(p) for p in message]
        if not parts:
            raise ValueError("send_message() needs at least one part.")
        self._contents.append({"role": "user", "parts": parts})
        try:
            response = self._generate()
        except BaseException:
            # Keep the conversation well-formed (user/model alternation) after a failed turn.
            self._contents.pop()
            raise
        raw = response.raw_content
        if not raw or not raw.get("parts"):
            raw = {"role": "model", "parts": [text_part(response.text)]}
        self._contents.append(raw)
        return response

    def _generate(self) -> LLMResponse:
        profile = self._profile
        prepared = GeminiAdapter().prepare_request(
            profile,
            contents=self._contents,
            system_instruction=self._system_instruction,
            tools=self._tools,
            api_key=self._api_key,
        )
        try:
            r = self._http.request(prepared.method, prepared.url, headers=prepared.headers, json=prepared.json)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            logger.warning("gemini request failed: %s", e)
            raise LLMRequestError.from_http_error(
                e, profile_id=profile.profile_id, model=profile.model_name, operation="generate_content"
            ) from e
        except ValueError as e:
            raise LLMRequestError(
                "gemini response is not valid JSON.",
                code=LLMErrorCode.RESPONSE_VALIDATION,
                profile_id=profile.profile_id,
                model=profile.model_name,
                details={"operation": "generate_content"},
            ) from e
        return gemini_to_response(profile_id=profile.profile_id, data=data)


class GeminiModelService:
    def __init__(self, profile: ModelProfile, *, api_key: str | None = None, http: httpx.Client | None = None) -> None:
        self._profile = profile
        self._api_key = api_key
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=profile.timeout_s)

    @property
    def profile(self) -> ModelProfile:
        return self._profile

    def start_chat(self, *, system_instruction: str, tools: list[FunctionDeclaration]) -> GeminiChat:
        api_key = self._api_key or resolve_api_key(self._profile.api_key_env)
        return GeminiChat(
            profile=self._profile,
            api_key=api_key,
            system_instruction=system_instruction,
            tools=tools,
            http=self._http,
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()
