from __future__ import annotations

import logging
from typing import Any

from ..models.tool_result import ToolResult
from ..models.ui_updates import Flash
from .filesystem import VirtualFileSystem, VirtualFileSystemError, normalize_path, surface_failures
from .registry import FunctionTool, define_tool

logger = logging.getLogger(__name__)

APP_ID = "notes"
NOTES_PREFIX = "/notes"
DEFAULT_FILENAME = "note.txt"
SNIPPET_BEFORE = 30
SNIPPET_AFTER = 50


def _note_path(filename: str) -> str:
    name = filename.strip().lstrip("/") or DEFAULT_FILENAME
    return f"{NOTES_PREFIX}/{name}"


def _snippet(content: str, idx: int, match_len: int) -> str:
    start = max(0, idx - SNIPPET_BEFORE)
    return content[start : idx + match_len + SNIPPET_AFTER]


def notes_tools(fs: VirtualFileSystem, target_id: str) -> list[FunctionTool]:
    def flash() -> Flash:
        return Flash(target_id=target_id, duration=400)

    @surface_failures
    async def create_note(params: dict[str, Any]) -> ToolResult:
        path = _note_path(str(params.get("filename") or ""))
        fs.write(path, str(params.get("content") or ""))
        return ToolResult.ok({"path": path}, ui_update=flash())

    async def search_notes(params: dict[str, Any]) -> ToolResult:
        query = str(params.get("query") or "").strip()
        if not query:
            return ToolResult.ok({"matches": []})
        needle = query.lower()
        matches: list[dict[str, str]] = []
        try:
            names = fs.list(NOTES_PREFIX)
        except VirtualFileSystemError as e:
            return ToolResult.fail(str(e))
        for name in names:
            path = f"{NOTES_PREFIX}/{name}"
            try:
                content = fs.read(path)
            except VirtualFileSystemError:
                logger.debug("skipping unreadable note %s", path)
                continue
            idx = content.lower().find(needle)
            if idx >= 0:
                matches.append({"path": path, "snippet": _snippet(content, idx, len(query))})
        return ToolResult.ok({"matches": matches})

    @surface_failures
    async def append_to_note(params: dict[str, Any]) -> ToolResult:
        raw = str(params.get("path") or "").strip()
        if not raw:
            return ToolResult.fail("path is required")
        path = normalize_path(raw)
        try:
            existing = fs.read(path)
        except VirtualFileSystemError:
            existing = ""
        fs.write(path, existing + str(params.get("content") or ""))
        return ToolResult.ok({"path": path}, ui_update=flash())

    return [
        define_tool(
            name="notes_create_note",
            description="Create a new note under /notes with the given filename and content",
            app_id=APP_ID,
            properties={
                "filename": {"type": "string", "description": "File name, e.g. ideas.txt"},
                "content": {"type": "string", "description": "Note content"},
            },
            required=["filename", "content"],
            handler=create_note,
        ),
        define_tool(
            name="notes_search_notes",
            description="Search all notes for a text query (case-insensitive). Returns matching paths with snippets.",
            app_id=APP_ID,
            properties={"query": {"type": "string", "description": "Text to search for"}},
            required=["query"],
            handler=search_notes,
        ),
        define_tool(
            name="notes_append_to_note",
            description="Append content to the end of an existing note (creates it if missing)",
            app_id=APP_ID,
            properties={
                "path": {"type": "string", "description": "Full note path, e.g. /notes/ideas.txt"},
                "content": {"type": "string", "description": "Text to append"},
            },
            required=["path", "content"],
            handler=append_to_note,
        ),
    ]
