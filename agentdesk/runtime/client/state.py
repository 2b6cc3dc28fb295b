from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from ..ids import now_ts_ms
from ..protocol import AgentEvent, AgentEventType


@dataclass(frozen=True, slots=True)
class LastToolCall:
    tool_name: str
    args: Any
    result: Any
    timestamp: int


class AgentStateStore:
    """
    The single visible "current run" slot.

    `start_execution` hands out a generation number; writes carrying an older generation are
    dropped, so a superseded run can no longer change what the slot shows.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self.is_executing = False
        self.current_intent: str | None = None
        self.execution_history: list[AgentEvent] = []
        self.last_tool_call: LastToolCall | None = None
        self.data_version = 0

    @property
    def generation(self) -> int:
        return self._generation

    def start_execution(self, intent: str) -> int:
        with self._lock:
            self._generation += 1
            self.is_executing = True
            self.current_intent = intent
            self.execution_history = []
            self.last_tool_call = None
            return self._generation

    def set_execution_history(self, events: list[AgentEvent], *, generation: int | None = None) -> bool:
        with self._lock:
            if not self._current(generation):
                return False
            self.execution_history = list(events)
            return True

    def add_event(self, event: AgentEvent, *, generation: int | None = None) -> bool:
        with self._lock:
            if not self._current(generation):
                return False
            self.execution_history = [*self.execution_history, event]
            if event.type == AgentEventType.TOOL_RESULT:
                self.last_tool_call = LastToolCall(
                    tool_name=str(event.data.get("toolName") or ""),
                    args=event.data.get("args"),
                    result=event.data.get("result"),
                    timestamp=now_ts_ms(),
                )
                self.data_version += 1
            return True

    def complete_execution(self, *, generation: int | None = None) -> bool:
        with self._lock:
            if not self._current(generation):
                return False
            self.is_executing = False
            self.current_intent = None
            return True

    def _current(self, generation: int | None) -> bool:
        return generation is None or generation == self._generation
