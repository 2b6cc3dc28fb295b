from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

SSE_CONTENT_TYPE = "text/event-stream"


class AgentEventType(StrEnum):
    AGENT_START = "agent-start"
    TOOL_CALL = "tool-call"
    # Built by the client after a tool runs; never sent by the server.
    TOOL_RESULT = "tool-result"
    AGENT_COMPLETE = "agent-complete"
    AGENT_TIMEOUT = "agent-timeout"
    ERROR = "error"


WIRE_EVENT_TYPES: frozenset[AgentEventType] = frozenset(
    {
        AgentEventType.AGENT_START,
        AgentEventType.TOOL_CALL,
        AgentEventType.AGENT_COMPLETE,
        AgentEventType.AGENT_TIMEOUT,
        AgentEventType.ERROR,
    }
)

TERMINAL_EVENT_TYPES: frozenset[AgentEventType] = frozenset(
    {AgentEventType.AGENT_COMPLETE, AgentEventType.AGENT_TIMEOUT, AgentEventType.ERROR}
)


@dataclass(frozen=True, slots=True)
class AgentEvent:
    type: AgentEventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AgentEvent":
        data = raw.get("data")
        return cls(type=AgentEventType(str(raw.get("type"))), data=dict(data) if isinstance(data, dict) else {})


def agent_start(*, intent: str, session_id: str) -> AgentEvent:
    return AgentEvent(AgentEventType.AGENT_START, {"intent": intent, "sessionId": session_id})


def tool_call(*, tool_name: str, args: dict[str, Any], thinking: str) -> AgentEvent:
    return AgentEvent(AgentEventType.TOOL_CALL, {"toolName": tool_name, "args": dict(args), "thinking": thinking})


def tool_result(
    *,
    tool_name: str,
    args: dict[str, Any],
    result: dict[str, Any],
    ui_update: dict[str, Any] | None = None,
) -> AgentEvent:
    data: dict[str, Any] = {"toolName": tool_name, "args": dict(args), "result": result}
    if ui_update is not None:
        data["uiUpdate"] = ui_update
    return AgentEvent(AgentEventType.TOOL_RESULT, data)


def agent_complete(*, message: str, iterations: int | None = None) -> AgentEvent:
    data: dict[str, Any] = {"message": message}
    if iterations is not None:
        data["iterations"] = int(iterations)
    return AgentEvent(AgentEventType.AGENT_COMPLETE, data)


def agent_timeout(*, message: str = "Maximum iterations reached") -> AgentEvent:
    return AgentEvent(AgentEventType.AGENT_TIMEOUT, {"message": message})


def error(message: str, *, code: str | None = None, **extra: Any) -> AgentEvent:
    data: dict[str, Any] = {"message": message}
    if code:
        data["code"] = code
    data.update({k: v for k, v in extra.items() if v is not None})
    return AgentEvent(AgentEventType.ERROR, data)


def encode_frame(event_type: str, data: Any) -> bytes:
    """One text/event-stream frame: `event: <type>\\ndata: <json>\\n\\n`."""

    payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event_type}\ndata: {payload}\n\n".encode("utf-8")


def encode_event(event: AgentEvent) -> bytes:
    return encode_frame(event.type.value, event.data)


@dataclass(frozen=True, slots=True)
class Frame:
    event: str
    data: Any


class FrameDecoder:
    """
    Incremental decoder for `event:`/`data:` frames.

    Bytes may arrive split at arbitrary points (including inside a UTF-8 sequence); frames
    are emitted once their terminating blank line has been seen. A frame whose data is not
    valid JSON is passed through as `{"raw": <text>}`. Frames missing either field are dropped.
    """

    def __init__(self) -> None:
        self._pending = b""
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[Frame]:
        if isinstance(chunk, bytes):
            self._pending += chunk
            text = self._decode_available()
        else:
            text = chunk
        self._buffer += text.replace("\r\n", "\n")
        frames: list[Frame] = []
        while "\n\n" in self._buffer:
            block, self._buffer = self._buffer.split("\n\n", 1)
            frame = _parse_block(block)
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> list[Frame]:
        """Flush a trailing frame that was not followed by a blank line."""

        tail = self._buffer
        if self._pending:
            tail += self._pending.decode("utf-8", errors="replace")
            self._pending = b""
        self._buffer = ""
        frame = _parse_block(tail.strip("\n"))
        return [frame] if frame is not None else []

    def _decode_available(self) -> str:
        data = self._pending
        # Hold back an incomplete multi-byte sequence at the end of the chunk.
        for cut in range(len(data), max(len(data) - 4, -1), -1):
            try:
                text = data[:cut].decode("utf-8")
            except UnicodeDecodeError:
                continue
            self._pending = data[cut:]
            return text
        self._pending = b""
        return data.decode("utf-8", errors="replace")


def _parse_block(block: str) -> Frame | None:
    if not block.strip():
        return None
    event_type = ""
    data_lines: list[str] = []
    for line in block.split("\n"):
        if line.startswith(":"):
            continue
        if line.startswith("event:"):
            event_type = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].lstrip(" "))
    if not event_type or not data_lines:
        return None
    raw = "\n".join(data_lines)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = {"raw": raw}
    return Frame(event=event_type, data=data)


def iter_frames(chunks: Iterable[bytes | str]) -> Iterator[Frame]:
    decoder = FrameDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


async def aiter_frames(chunks: AsyncIterator[bytes]) -> AsyncIterator[Frame]:
    decoder = FrameDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.finish():
        yield frame
