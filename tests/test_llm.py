from __future__ import annotations

import httpx
import pytest

from agentdesk.runtime.llm import (
    CredentialResolutionError,
    GeminiModelService,
    LLMErrorCode,
    LLMRequestError,
    ModelProfile,
    ProviderAdapterError,
    error_event_payload,
)
from agentdesk.runtime.llm.client_gemini import gemini_to_response
from agentdesk.runtime.llm.errors import code_for_status
from agentdesk.runtime.llm.providers import GeminiAdapter, build_generate_content_url, function_declaration_to_gemini
from agentdesk.runtime.llm.secrets import resolve_api_key
from agentdesk.runtime.llm.types import FunctionDeclaration


class TestResponseDecoding:
    def test_text_and_function_calls(self) -> None:
        data = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "thinking hard", "thought": True},
                            {"text": "Listing files."},
                            {"functionCall": {"name": "ls", "args": {"path": "/"}}, "thoughtSignature": "sig"},
                        ]
                    },
                    "finishReason": "STOP",
                }
            ],
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 3, "totalTokenCount": 13},
            "modelVersion": "gemini-x",
        }
        resp = gemini_to_response(profile_id="p", data=data)
        assert resp.text == "Listing files."
        (call,) = resp.tool_calls
        assert call.name == "ls"
        assert call.arguments == {"path": "/"}
        assert call.tool_call_id == "gemini_2"
        assert call.thought_signature == "sig"
        assert resp.usage.total_tokens == 13
        assert resp.stop_reason == "STOP"
        assert resp.model == "gemini-x"
        assert resp.raw_content["role"] == "model"

    def test_wrapped_payload(self) -> None:
        resp = gemini_to_response(profile_id="p", data={"response": {"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}})
        assert resp.text == "hi"
        assert resp.tool_calls == []

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"candidates": []},
            {"candidates": [{"content": {"parts": [{"functionCall": {"args": {}}}]}}]},
            {"candidates": [{"content": {"parts": [{"functionCall": {"name": "x", "args": [1]}}]}}]},
        ],
    )
    def test_malformed_replies(self, data) -> None:
        with pytest.raises(ProviderAdapterError):
            gemini_to_response(profile_id="p", data=data)


class TestAdapter:
    def test_schema_mapping(self) -> None:
        decl = FunctionDeclaration(
            name="add_task",
            description="Add",
            parameters={
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "priority": {"type": "string", "enum": ["low", "high"]},
                    "paths": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["title"],
            },
        )
        out = function_declaration_to_gemini(decl)
        props = out["parameters"]["properties"]
        assert props["title"] == {"type": "STRING"}
        assert props["priority"] == {"type": "STRING", "format": "enum", "enum": ["low", "high"]}
        assert props["paths"] == {"type": "ARRAY", "items": {"type": "STRING"}}
        assert out["parameters"]["required"] == ["title"]

    def test_url_building(self) -> None:
        assert build_generate_content_url(base_url="http://h:1", model_name="m") == "http://h:1/v1beta/models/m:generateContent"
        full = "http://h/custom:generateContent"
        assert build_generate_content_url(base_url=full, model_name="m") == full
        with pytest.raises(ProviderAdapterError):
            build_generate_content_url(base_url="not a url", model_name="m")

    def test_request_frame(self) -> None:
        prepared = GeminiAdapter().prepare_request(
            ModelProfile(base_url="http://h"),
            contents=[{"role": "user", "parts": [{"text": "hi"}]}],
            system_instruction="be brief",
            tools=[],
            api_key="k",
        )
        assert prepared.headers["x-goog-api-key"] == "k"
        assert prepared.json["systemInstruction"] == {"parts": [{"text": "be brief"}]}
        assert "tools" not in prepared.json


class TestErrors:
    def test_status_codes(self) -> None:
        assert code_for_status(429) is LLMErrorCode.RATE_LIMIT
        assert code_for_status(503) is LLMErrorCode.SERVER_ERROR
        assert code_for_status(418) is LLMErrorCode.UNKNOWN
        assert code_for_status(None) is LLMErrorCode.UNKNOWN

    def test_invalid_key_payload(self) -> None:
        payload = error_event_payload(RuntimeError("400: API key not valid. Please pass a valid API key."))
        assert payload["code"] == "API_KEY_INVALID"
        assert error_event_payload(RuntimeError("")) == {"message": "Unknown error"}

    def test_missing_credential(self, monkeypatch) -> None:
        monkeypatch.delenv("AGENTDESK_TEST_KEY", raising=False)
        with pytest.raises(CredentialResolutionError):
            resolve_api_key(["AGENTDESK_TEST_KEY"])
        monkeypatch.setenv("AGENTDESK_TEST_KEY", "  abc ")
        assert resolve_api_key(["AGENTDESK_TEST_KEY"]) == "abc"


class TestChat:
    def test_failed_turn_is_rolled_back(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="API key not valid. Please pass a valid API key.")

        service = GeminiModelService(ModelProfile(base_url="http://model.test"), api_key="bad", http=httpx.Client(transport=httpx.MockTransport(handler)))
        chat = service.start_chat(system_instruction="", tools=[])
        with pytest.raises(LLMRequestError) as info:
            chat.send_message("hello")
        assert info.value.code is LLMErrorCode.BAD_REQUEST
        assert info.value.retryable is False
        assert error_event_payload(info.value)["code"] == "API_KEY_INVALID"
        assert chat.history == []

    def test_history_alternates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": [{"content": {"role": "model", "parts": [{"text": "ok"}]}}]})

        service = GeminiModelService(ModelProfile(base_url="http://model.test"), api_key="k", http=httpx.Client(transport=httpx.MockTransport(handler)))
        chat = service.start_chat(system_instruction="sys", tools=[])
        assert chat.send_message("one").text == "ok"
        chat.send_message("two")
        assert [c["role"] for c in chat.history] == ["user", "model", "user", "model"]
