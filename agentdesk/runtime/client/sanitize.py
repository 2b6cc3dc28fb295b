from __future__ import annotations

import json
from typing import Any

from ..models.tool_result import ToolResult

MAX_RESULT_CHARS = 12000
SUMMARY_CHARS = 500
TRUNCATION_MARKER = "...[truncated]"


def serialize_data(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"), default=str)


def truncate_data(data: Any, *, max_chars: int = MAX_RESULT_CHARS) -> Any:
    """Return `data` unchanged, or a compact summary when its serialization exceeds `max_chars`."""

    if data is None:
        return None
    serialized = serialize_data(data)
    if len(serialized) <= max_chars:
        return data
    return {
        "_truncated": True,
        "_originalLength": len(serialized),
        "summary": serialized[:SUMMARY_CHARS] + TRUNCATION_MARKER,
    }


def result_for_model(result: ToolResult, *, max_chars: int = MAX_RESULT_CHARS) -> dict[str, Any]:
    """
    The copy of a tool result sent back upstream: `{success, data?, error?}`.

    UI descriptors never travel to the model, and oversized data is summarized. The caller's
    `result` is not modified.
    """

    payload: dict[str, Any] = {"success": result.success}
    data = truncate_data(result.data, max_chars=max_chars)
    if data is not None:
        payload["data"] = data
    if result.error is not None:
        payload["error"] = result.error
    return payload
