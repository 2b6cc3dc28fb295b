from __future__ import annotations

import asyncio

from agentdesk.runtime import protocol
from agentdesk.runtime.protocol import AgentEvent, AgentEventType, FrameDecoder, aiter_frames, iter_frames


class TestEncoding:
    def test_frame_layout(self) -> None:
        raw = protocol.encode_event(protocol.agent_start(intent="hi", session_id="agent-1"))
        assert raw == b'event: agent-start\ndata: {"intent":"hi","sessionId":"agent-1"}\n\n'

    def test_non_ascii_is_kept_verbatim(self) -> None:
        raw = protocol.encode_frame("agent-complete", {"message": "héllo ✓"})
        assert "héllo ✓".encode("utf-8") in raw

    def test_error_event_drops_none_extras(self) -> None:
        event = protocol.error("boom", code=None, toolName="x", other=None)
        assert event.data == {"message": "boom", "toolName": "x"}

    def test_terminal_types(self) -> None:
        assert protocol.agent_complete(message="ok").is_terminal
        assert protocol.agent_timeout().is_terminal
        assert protocol.error("x").is_terminal
        assert not protocol.tool_call(tool_name="t", args={}, thinking="").is_terminal


class TestFrameDecoder:
    def test_frames_split_across_chunks(self) -> None:
        payload = protocol.encode_event(protocol.tool_call(tool_name="notes_create_note", args={"a": 1}, thinking="t"))
        payload += protocol.encode_event(protocol.agent_complete(message="done"))
        chunks = [payload[i : i + 7] for i in range(0, len(payload), 7)]
        frames = list(iter_frames(chunks))
        assert [f.event for f in frames] == ["tool-call", "agent-complete"]
        assert frames[0].data["args"] == {"a": 1}

    def test_multibyte_character_split_between_chunks(self) -> None:
        payload = protocol.encode_frame("agent-complete", {"message": "日本"})
        cut = payload.index("日".encode("utf-8")) + 1
        decoder = FrameDecoder()
        assert decoder.feed(payload[:cut]) == []
        frames = decoder.feed(payload[cut:])
        assert frames[0].data == {"message": "日本"}

    def test_malformed_json_passes_through_as_raw(self) -> None:
        frames = list(iter_frames([b"event: tool-call\ndata: {not json\n\n"]))
        assert frames[0].data == {"raw": "{not json"}

    def test_frames_missing_a_field_are_dropped(self) -> None:
        frames = list(iter_frames([b"data: {}\n\n", b"event: agent-start\n\n", b": comment\n\n"]))
        assert frames == []

    def test_trailing_frame_without_blank_line(self) -> None:
        frames = list(iter_frames([b'event: agent-complete\ndata: {"message":"x"}']))
        assert frames[0].event == "agent-complete"

    def test_crlf_line_endings(self) -> None:
        frames = list(iter_frames([b'event: agent-timeout\r\ndata: {"message":"m"}\r\n\r\n']))
        assert frames[0].data == {"message": "m"}

    def test_async_iteration(self) -> None:
        async def chunks():
            yield b"event: agent-start\nda"
            yield b'ta: {"sessionId":"s"}\n\n'

        async def collect():
            return [f async for f in aiter_frames(chunks())]

        frames = asyncio.run(collect())
        assert frames[0].data == {"sessionId": "s"}


class TestAgentEvent:
    def test_dict_round_trip_keeps_data(self) -> None:
        event = protocol.tool_result(tool_name="t", args={"p": 1}, result={"success": True}, ui_update={"type": "flash"})
        restored = AgentEvent.from_dict(event.to_dict())
        assert restored.type is AgentEventType.TOOL_RESULT
        assert restored.data["uiUpdate"] == {"type": "flash"}

    def test_tool_result_omits_missing_ui_update(self) -> None:
        event = protocol.tool_result(tool_name="t", args={}, result={"success": True})
        assert "uiUpdate" not in event.data
