from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import datetime

from ..models.tool_spec import ToolDefinition

SYSTEM_INSTRUCTION_TEMPLATE = """You are an AI agent controlling workspace applications.

You have access to the following tools:
{{TOOLS}}

Your goal: {{GOAL}}

Today is {{TODAY}} ({{TZ}}).

Think step-by-step:
1. Determine which tools you need to fully satisfy the user's request.
2. Call tools in the right order (one tool call per step; the system will send you the result and you can then call the next).
3. Use results from previous tools to inform the next steps.
4. Do NOT respond with only text ("Done", "Task complete", etc.) until the user's request is fully done. If more tool calls are needed to complete the goal, always make the next tool call instead of replying with text.
5. Only when every part of the user's intent is satisfied, reply briefly with a summary and no further tool call.

When creating a note that contains or is written in markdown, use a path with the .md extension (e.g. /notes/my-note.md). Use .txt or no extension for plain text notes.

Always explain briefly what you're doing before calling a tool. Prefer calling more tools to finish the task rather than stopping early."""

_TOKEN_RE = re.compile(r"\{\{\s*([A-Z_]+)(?::([^}]+))?\s*\}\}")


def _format_tz_offset(now: datetime) -> str:
    offset = now.utcoffset()
    if offset is None:
        return "UTC"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    hh = total // 3600
    mm = (total % 3600) // 60
    return f"UTC{sign}{hh:02d}:{mm:02d}"


def render_prompt_template(text: str, *, now: datetime | None = None, vars: Mapping[str, str] | None = None) -> str:
    """
    Render `{{NAME}}` tokens.

    Built in: {{TODAY}} / {{TODAY:<strftime>}} and {{TZ}}. Anything in `vars` wins; unknown
    tokens are left as-is.
    """

    current = now or datetime.now().astimezone()
    custom_vars: Mapping[str, str] = vars or {}

    def _replace(m: re.Match[str]) -> str:
        name = (m.group(1) or "").strip().upper()
        fmt = m.group(2)
        if name in custom_vars:
            return str(custom_vars.get(name) or "")
        if name == "TODAY":
            d = current.date()
            if isinstance(fmt, str) and fmt.strip():
                try:
                    return d.strftime(fmt.strip())
                except ValueError:
                    return d.isoformat()
            return d.isoformat()
        if name == "TZ":
            return _format_tz_offset(current)
        return m.group(0)

    return _TOKEN_RE.sub(_replace, text)


def build_system_instruction(intent: str, tools: Iterable[ToolDefinition], *, now: datetime | None = None) -> str:
    tool_lines = "\n".join(f"- {t.name}: {t.description}" for t in tools)
    return render_prompt_template(
        SYSTEM_INSTRUCTION_TEMPLATE,
        now=now,
        vars={"TOOLS": tool_lines, "GOAL": intent},
    )
