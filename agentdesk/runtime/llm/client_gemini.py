from __future__ import annotations

import json
from typing import Any

from .errors import ProviderAdapterError
from .types import LLMResponse, LLMUsage, ProviderKind, ToolCall


def _int_or_none(value: Any) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _usage(meta: Any) -> LLMUsage | None:
    if not isinstance(meta, dict):
        return None
    return LLMUsage(
        input_tokens=_int_or_none(meta.get("promptTokenCount")),
        output_tokens=_int_or_none(meta.get("candidatesTokenCount")),
        total_tokens=_int_or_none(meta.get("totalTokenCount")),
    )


def _first_candidate(root: dict[str, Any]) -> dict[str, Any]:
    raw = root.get("candidates")
    candidates = raw if isinstance(raw, list) else [raw] if isinstance(raw, dict) else []
    for cand in candidates:
        if isinstance(cand, dict):
            return cand
    raise ProviderAdapterError("gemini response is missing candidates[0].")


def _tool_call(idx: int, part: dict[str, Any], fc: dict[str, Any]) -> ToolCall:
    name = fc.get("name")
    if not isinstance(name, str) or not name:
        raise ProviderAdapterError("gemini functionCall missing name.")
    args = fc.get("args") or {}
    if not isinstance(args, dict):
        raise ProviderAdapterError("gemini functionCall.args must be an object.")
    sig = part.get("thoughtSignature") or part.get("thought_signature")
    return ToolCall(
        tool_call_id=f"gemini_{idx}",
        name=name,
        arguments=dict(args),
        raw_arguments=json.dumps(args, ensure_ascii=False),
        thought_signature=sig if isinstance(sig, str) and sig else None,
    )


def gemini_to_response(*, profile_id: str, data: Any) -> LLMResponse:
    """
    Decode a `generateContent` reply.

    Visible text parts are concatenated (thought parts are skipped); every `functionCall` part
    becomes a ToolCall in order. The model turn is kept as `raw_content` so it can be replayed
    into the conversation unchanged.
    """

    if not isinstance(data, dict):
        raise ProviderAdapterError("gemini response must be a JSON object.")
    # Some gateways wrap the payload.
    root = data["response"] if isinstance(data.get("response"), dict) else data

    cand = _first_candidate(root)
    content = cand.get("content")
    raw_parts = content.get("parts") if isinstance(content, dict) else None
    parts = [p for p in raw_parts if isinstance(p, dict)] if isinstance(raw_parts, list) else []

    text = "".join(p["text"] for p in parts if isinstance(p.get("text"), str) and p.get("thought") is not True)
    tool_calls = [_tool_call(i, p, p["functionCall"]) for i, p in enumerate(parts) if isinstance(p.get("functionCall"), dict)]

    model = root.get("modelVersion") or root.get("model")
    stop = cand.get("finishReason")
    request_id = root.get("responseId")
    return LLMResponse(
        provider_kind=ProviderKind.GEMINI,
        profile_id=profile_id,
        model=model if isinstance(model, str) else "",
        text=text,
        tool_calls=tool_calls,
        usage=_usage(root.get("usageMetadata")),
        stop_reason=stop if isinstance(stop, str) else None,
        request_id=request_id if isinstance(request_id, str) else None,
        raw_content={"role": "model", "parts": parts},
    )
