from __future__ import annotations

from .agent_session import AgentSession, default_label
from .status import RunPhase, RunStatus
from .tool_result import ToolResult
from .tool_spec import ToolDefinition, ToolParameters, ToolProperty
from .ui_updates import UIUpdate, parse_ui_update

__all__ = [
    "AgentSession",
    "RunPhase",
    "RunStatus",
    "ToolDefinition",
    "ToolParameters",
    "ToolProperty",
    "ToolResult",
    "UIUpdate",
    "default_label",
    "parse_ui_update",
]
