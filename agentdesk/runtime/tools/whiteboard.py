from __future__ import annotations

from typing import Any

from ..ids import new_record_id
from ..models.tool_result import ToolResult
from ..models.ui_updates import Box, Point, WhiteboardClearAnimation, WhiteboardDrawShape, WhiteboardWriteText
from .filesystem import JsonFile, VirtualFileSystem, surface_failures
from .registry import FunctionTool, define_tool, number_param

APP_ID = "whiteboard"
DEFAULT_PATH = "/whiteboard/default.json"
SHAPES = ("rectangle", "circle", "line", "arrow")
WIPE_MS = 500


def whiteboard_tools(fs: VirtualFileSystem, target_id: str, *, path: str = DEFAULT_PATH) -> list[FunctionTool]:
    """Drawing tools; the board document is `{"elements": [...]}` and an unreadable one starts empty."""

    store = JsonFile(fs, path)

    def elements() -> list[dict[str, Any]]:
        raw = store.load_object().get("elements")
        return [e for e in raw if isinstance(e, dict)] if isinstance(raw, list) else []

    def append(element: dict[str, Any]) -> None:
        current = elements()
        current.append({"id": new_record_id("el", (e.get("id") for e in current)), **element})
        store.save({"elements": current})

    @surface_failures
    async def draw(params: dict[str, Any]) -> ToolResult:
        shape = params.get("shape") or "rectangle"
        if shape not in SHAPES:
            return ToolResult.fail(f"shape must be one of: {', '.join(SHAPES)}")
        x = number_param(params, "x", 100)
        y = number_param(params, "y", 100)
        width = number_param(params, "width", 80)
        height = number_param(params, "height", 60)

        element: dict[str, Any] = {"type": "ellipse" if shape == "circle" else shape, "x": x, "y": y}
        if shape in ("rectangle", "circle"):
            element.update(width=width, height=height)
        append(element)
        coordinates = {"x": x, "y": y, "width": width, "height": height}
        return ToolResult.ok(
            {"shape": shape, "coordinates": coordinates},
            ui_update=WhiteboardDrawShape(target_id=target_id, shape=shape, coordinates=Box(**coordinates)),
        )

    @surface_failures
    async def add_text(params: dict[str, Any]) -> ToolResult:
        text = str(params.get("text") or "").strip()
        if not text:
            return ToolResult.fail("text is required")
        x = number_param(params, "x", 100)
        y = number_param(params, "y", 100)
        append({"type": "text", "x": x, "y": y, "text": text})
        return ToolResult.ok(
            {"text": text, "position": {"x": x, "y": y}},
            ui_update=WhiteboardWriteText(target_id=target_id, text=text, position=Point(x=x, y=y)),
        )

    @surface_failures
    async def clear(params: dict[str, Any]) -> ToolResult:
        wipe = number_param(params, "wipeDuration", WIPE_MS)
        store.save({"elements": []})
        return ToolResult.ok({}, ui_update=WhiteboardClearAnimation(target_id=target_id, wipe_duration=max(0, wipe)))

    position = {
        "x": {"type": "number", "description": "X position in pixels"},
        "y": {"type": "number", "description": "Y position in pixels"},
    }

    return [
        define_tool(
            name="whiteboard_draw",
            description="Draw exactly one shape on the whiteboard (rectangle, circle, line, arrow). Call it once per shape.",
            app_id=APP_ID,
            properties={
                "shape": {"type": "string", "description": "Shape type", "enum": list(SHAPES)},
                **position,
                "width": {"type": "number", "description": "Width in pixels (optional)"},
                "height": {"type": "number", "description": "Height in pixels (optional)"},
            },
            required=["shape", "x", "y"],
            handler=draw,
        ),
        define_tool(
            name="whiteboard_add_text",
            description="Add exactly one text label to the whiteboard. Call it once per label.",
            app_id=APP_ID,
            properties={"text": {"type": "string", "description": "Text content"}, **position},
            required=["text", "x", "y"],
            handler=add_text,
        ),
        define_tool(
            name="whiteboard_clear",
            description="Clear the whiteboard",
            app_id=APP_ID,
            properties={"wipeDuration": {"type": "number", "description": "Animation duration in ms (optional)"}},
            handler=clear,
        ),
    ]
