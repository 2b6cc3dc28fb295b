from __future__ import annotations

from typing import Any
from urllib.parse import urljoin, urlparse

from .base import PreparedRequest
from ..config import ModelProfile
from ..errors import ProviderAdapterError
from ..types import FunctionDeclaration

_SCHEMA_TYPES: dict[str, str] = {
    "string": "STRING",
    "number": "NUMBER",
    "integer": "INTEGER",
    "boolean": "BOOLEAN",
    "object": "OBJECT",
    "array": "ARRAY",
}


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


def function_response_part(*, name: str, response: Any) -> dict[str, Any]:
    if not isinstance(response, dict):
        response = {"result": response}
    return {"functionResponse": {"name": name, "response": response}}


def _map_property_schema(prop: Any) -> dict[str, Any]:
    if not isinstance(prop, dict):
        return {"type": "STRING"}
    description = prop.get("description")
    enum = prop.get("enum")
    if isinstance(enum, list) and enum:
        out: dict[str, Any] = {"type": "STRING", "format": "enum", "enum": [str(v) for v in enum]}
        if isinstance(description, str):
            out["description"] = description
        return out

    raw_type = prop.get("type")
    mapped = _SCHEMA_TYPES.get(raw_type if isinstance(raw_type, str) else "", "STRING")
    out = {"type": mapped}
    if isinstance(description, str):
        out["description"] = description
    if mapped == "ARRAY":
        items = prop.get("items")
        if isinstance(items, dict) and isinstance(items.get("properties"), dict):
            out["items"] = _map_object_schema(items)
        elif isinstance(items, dict):
            item_type = items.get("type")
            out["items"] = {"type": _SCHEMA_TYPES.get(item_type if isinstance(item_type, str) else "", "STRING")}
        else:
            out["items"] = {"type": "STRING"}
    elif mapped == "OBJECT" and isinstance(prop.get("properties"), dict):
        return {**_map_object_schema(prop), **({"description": description} if isinstance(description, str) else {})}
    return out


def _map_object_schema(schema: dict[str, Any]) -> dict[str, Any]:
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    required = schema.get("required")
    out: dict[str, Any] = {
        "type": "OBJECT",
        "properties": {str(k): _map_property_schema(v) for k, v in properties.items()},
    }
    if isinstance(required, list):
        out["required"] = [str(r) for r in required if isinstance(r, str)]
    return out


def function_declaration_to_gemini(decl: FunctionDeclaration) -> dict[str, Any]:
    if not decl.name:
        raise ProviderAdapterError("function declaration is missing a name.")
    return {
        "name": decl.name,
        "description": decl.description,
        "parameters": _map_object_schema(decl.parameters if isinstance(decl.parameters, dict) else {}),
    }


class GeminiAdapter:
    """
    Adapter for Gemini-style `v1beta/models/{model}:generateContent`.

    `base_url` can be either:
      - a base prefix (e.g. `https://generativelanguage.googleapis.com`) in which case the adapter
        appends `v1beta/models/{model}:generateContent`, or
      - a full `:generateContent` URL.

    The conversation itself (`contents`) is owned by the caller; the adapter only frames it.
    """

    def prepare_request(
        self,
        profile: ModelProfile,
        *,
        contents: list[dict[str, Any]],
        system_instruction: str | None,
        tools: list[FunctionDeclaration],
        api_key: str,
    ) -> PreparedRequest:
        if not isinstance(profile.default_params, dict):
            raise ProviderAdapterError("gemini profile.default_params must be a dict.")

        payload: dict[str, Any] = {}
        for k, v in profile.default_params.items():
            if k in {"contents", "tools", "model", "systemInstruction"}:
                continue
            payload[k] = v

        payload["contents"] = list(contents)
        if system_instruction:
            payload["systemInstruction"] = {"parts": [text_part(system_instruction)]}

        if tools:
            payload["tools"] = [{"functionDeclarations": [function_declaration_to_gemini(t) for t in tools]}]
            payload.setdefault("toolConfig", {"functionCallingConfig": {"mode": "AUTO"}})

        url = build_generate_content_url(base_url=profile.base_url, model_name=profile.model_name)
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        return PreparedRequest(method="POST", url=url, headers=headers, json=payload)


def build_generate_content_url(*, base_url: str, model_name: str) -> str:
    if not isinstance(base_url, str) or not base_url.strip():
        raise ProviderAdapterError("gemini base_url is empty.")

    if ":generateContent" in base_url:
        return base_url
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        raise ProviderAdapterError(f"Invalid gemini base_url: {base_url!r}")
    return urljoin(base_url.rstrip("/") + "/", f"v1beta/models/{model_name}:generateContent")
