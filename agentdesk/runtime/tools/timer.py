from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..ids import now_ts_ms
from ..models.tool_result import ToolResult
from ..models.ui_updates import TimerStartRipple
from .filesystem import JsonFile, VirtualFileSystem, surface_failures
from .registry import FunctionTool, define_tool, number_param

APP_ID = "timer"
DEFAULT_PATH = "/timer/state.json"
DEFAULT_SECONDS = 25 * 60


def timer_tools(
    fs: VirtualFileSystem,
    target_id: str,
    *,
    path: str = DEFAULT_PATH,
    clock: Callable[[], int] = now_ts_ms,
) -> list[FunctionTool]:
    """
    Countdown timer tools.

    State is `{durationSeconds, startedAt}` with `startedAt` in unix ms, or null while stopped.
    """

    store = JsonFile(fs, path)

    def load_state() -> dict[str, Any]:
        data = store.load_object()
        duration = number_param(data, "durationSeconds", DEFAULT_SECONDS)
        started = data.get("startedAt")
        return {
            "durationSeconds": duration,
            "startedAt": started if isinstance(started, int) and not isinstance(started, bool) else None,
        }

    @surface_failures
    async def start(params: dict[str, Any]) -> ToolResult:
        duration = number_param(params, "durationSeconds", 60) or 60
        if duration < 0:
            duration = 60
        store.save({"durationSeconds": duration, "startedAt": clock()})
        return ToolResult.ok({"durationSeconds": duration}, ui_update=TimerStartRipple(target_id=target_id, duration=duration))

    @surface_failures
    async def reset(params: dict[str, Any]) -> ToolResult:
        minutes = number_param(params, "presetMinutes", 25) or 25
        store.save({"durationSeconds": minutes * 60, "startedAt": None})
        return ToolResult.ok({"reset": True})

    @surface_failures
    async def pause(params: dict[str, Any]) -> ToolResult:
        state = load_state()
        remaining = state["durationSeconds"]
        if state["startedAt"] is not None:
            elapsed = (clock() - state["startedAt"]) // 1000
            remaining = max(0, remaining - elapsed)
        store.save({"durationSeconds": remaining, "startedAt": None})
        return ToolResult.ok({"paused": True, "remainingSeconds": remaining})

    return [
        define_tool(
            name="timer_start",
            description="Start the timer with a duration in seconds (e.g. 300 for 5 minutes)",
            app_id=APP_ID,
            properties={"durationSeconds": {"type": "number", "description": "Duration in seconds (e.g. 300 for 5 min, 60 for 1 min)"}},
            required=["durationSeconds"],
            handler=start,
        ),
        define_tool(
            name="timer_reset",
            description="Reset and stop the timer",
            app_id=APP_ID,
            properties={"presetMinutes": {"type": "number", "description": "Optional preset in minutes (e.g. 25 for 25 min)"}},
            handler=reset,
        ),
        define_tool(
            name="timer_pause",
            description="Pause the running timer",
            app_id=APP_ID,
            properties={},
            handler=pause,
        ),
    ]
