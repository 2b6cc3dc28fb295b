from __future__ import annotations

from dataclasses import dataclass
from typing import Any

MAX_ATTACHED_FILES = 5
MAX_FILE_CONTENT_CHARS = 8000
TRUNCATION_MARKER = "\n...[truncated]"


@dataclass(frozen=True, slots=True)
class AttachedFile:
    path: str
    content: str


def parse_attached_files(raw: Any) -> list[AttachedFile]:
    """
    Normalize an `attachedFiles` body field.

    Only the first five entries are considered; entries without a path are dropped and
    content beyond 8000 characters is cut with a trailing marker.
    """

    if not isinstance(raw, list):
        return []
    out: list[AttachedFile] = []
    for item in raw[:MAX_ATTACHED_FILES]:
        if not isinstance(item, dict):
            continue
        path = item.get("path").strip() if isinstance(item.get("path"), str) else ""
        content = item.get("content") if isinstance(item.get("content"), str) else ""
        if len(content) > MAX_FILE_CONTENT_CHARS:
            content = content[:MAX_FILE_CONTENT_CHARS] + TRUNCATION_MARKER
        if path:
            out.append(AttachedFile(path=path, content=content))
    return out


def compose_turn_text(intent: str, files: list[AttachedFile]) -> str:
    if not files:
        return intent
    blocks = "\n".join(f"--- File: {f.path} ---\n{f.content}\n" for f in files)
    return f"Goal: {intent}\n\nAttached files for context:\n\n{blocks}"
