from __future__ import annotations

from .calendar import calendar_tools
from .code_editor import code_editor_tools
from .email import EmailSender, email_tools, outbox_sender
from .file_browser import file_browser_tools
from .filesystem import InMemoryFileSystem, VirtualFileSystem, VirtualFileSystemError, normalize_path
from .notes import notes_tools
from .registry import FunctionTool, Tool, ToolRegistry, ToolRegistryError, define_tool
from .timer import timer_tools
from .todo import todo_tools
from .whiteboard import whiteboard_tools

__all__ = [
    "EmailSender",
    "FunctionTool",
    "InMemoryFileSystem",
    "Tool",
    "ToolRegistry",
    "ToolRegistryError",
    "VirtualFileSystem",
    "VirtualFileSystemError",
    "calendar_tools",
    "code_editor_tools",
    "default_registry",
    "define_tool",
    "email_tools",
    "file_browser_tools",
    "normalize_path",
    "notes_tools",
    "outbox_sender",
    "timer_tools",
    "todo_tools",
    "whiteboard_tools",
]

DEFAULT_TARGETS = {
    "file-browser": "file-browser",
    "notes": "notes",
    "code-editor": "code-editor",
    "todo": "todo",
    "calendar": "calendar",
    "timer": "timer",
    "email": "email",
    "whiteboard": "whiteboard",
}


def default_registry(
    fs: VirtualFileSystem,
    *,
    targets: dict[str, str] | None = None,
    email_sender: EmailSender | None = None,
) -> ToolRegistry:
    """Registry holding every built-in application's tools, each addressing its window id in `targets`."""

    t = {**DEFAULT_TARGETS, **(targets or {})}
    registry = ToolRegistry()
    registry.register_all(file_browser_tools(fs, t["file-browser"]))
    registry.register_all(notes_tools(fs, t["notes"]))
    registry.register_all(code_editor_tools(fs, t["code-editor"]))
    registry.register_all(todo_tools(fs, t["todo"]))
    registry.register_all(calendar_tools(fs, t["calendar"]))
    registry.register_all(timer_tools(fs, t["timer"]))
    registry.register_all(email_tools(fs, t["email"], send=email_sender))
    registry.register_all(whiteboard_tools(fs, t["whiteboard"]))
    return registry
