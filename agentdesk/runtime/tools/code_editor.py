from __future__ import annotations

from typing import Any

from ..models.tool_result import ToolResult
from ..models.ui_updates import CodeEditorLineHighlight, CodeEditorTypeCode
from .filesystem import VirtualFileSystem, normalize_path, surface_failures
from .registry import FunctionTool, define_tool

APP_ID = "code-editor"
TYPING_SPEED = 35


def _line_count(content: str) -> int:
    return max(1, content.count("\n") + 1)


def code_editor_tools(fs: VirtualFileSystem, target_id: str) -> list[FunctionTool]:
    """Write/read/highlight tools for one code-editor window."""

    def highlight(lines: list[int], duration: int) -> CodeEditorLineHighlight:
        return CodeEditorLineHighlight(target_id=target_id, line_numbers=lines, duration=duration)

    @surface_failures
    async def write(params: dict[str, Any]) -> ToolResult:
        raw = str(params.get("path") or "").strip()
        if not raw:
            return ToolResult.fail("path is required")
        path = normalize_path(raw)
        content = str(params.get("content") or "")
        fs.write(path, content)

        animated = params.get("animated", True) is not False
        if animated:
            update: Any = CodeEditorTypeCode(
                target_id=target_id,
                code=content,
                start_line=1,
                speed=TYPING_SPEED,
                syntax_highlight=False,
                path=path,
            )
        else:
            update = highlight(list(range(1, _line_count(content) + 1)), 1500)
        return ToolResult.ok({"path": path}, ui_update=update)

    @surface_failures
    async def read_file(params: dict[str, Any]) -> ToolResult:
        raw = str(params.get("path") or "").strip()
        if not raw:
            return ToolResult.fail("path is required")
        path = normalize_path(raw)
        content = fs.read(path)
        return ToolResult.ok({"path": path, "content": content}, ui_update=highlight([1], 1000))

    async def highlight_lines(params: dict[str, Any]) -> ToolResult:
        raw = params.get("lineNumbers")
        lines = [n for n in (raw if isinstance(raw, list) else []) if isinstance(n, int) and not isinstance(n, bool) and n >= 1]
        if not lines:
            return ToolResult.ok({})
        return ToolResult.ok({"lineNumbers": lines}, ui_update=highlight(lines, 2000))

    return [
        define_tool(
            name="code_editor_write",
            description=(
                "Write code to a file and show it in the code editor. "
                "Set animated=false to skip the typing animation for long files."
            ),
            app_id=APP_ID,
            properties={
                "path": {"type": "string", "description": "File path, e.g. /src/main.py"},
                "content": {"type": "string", "description": "Full file content"},
                "animated": {"type": "boolean", "description": "Type the code out character by character (default true)"},
            },
            required=["path", "content"],
            handler=write,
        ),
        define_tool(
            name="code_editor_read_file",
            description="Read a file and open it in the code editor",
            app_id=APP_ID,
            properties={"path": {"type": "string", "description": "File path"}},
            required=["path"],
            handler=read_file,
        ),
        define_tool(
            name="code_editor_highlight_lines",
            description="Highlight line numbers in the code editor (1-based)",
            app_id=APP_ID,
            properties={
                "lineNumbers": {
                    "type": "array",
                    "description": "Line numbers to highlight",
                    "items": {"type": "integer"},
                }
            },
            required=["lineNumbers"],
            handler=highlight_lines,
        ),
    ]
