from __future__ import annotations

import asyncio
import json

import httpx

from agentdesk.runtime import protocol
from agentdesk.runtime.client import AgentExecutor, AgentSessionsStore, AgentStateStore, AgentTransport
from agentdesk.runtime.client.sanitize import TRUNCATION_MARKER, result_for_model, truncate_data
from agentdesk.runtime.llm.gemini_stub_server import function_call_reply
from agentdesk.runtime.models import RunPhase, RunStatus, ToolResult
from agentdesk.runtime.protocol import AgentEventType
from agentdesk.runtime.tools import InMemoryFileSystem, ToolRegistry, default_registry, define_tool
from agentdesk.runtime.ui import SurfaceRegistry, UIUpdateExecutor


def _sse(*events: protocol.AgentEvent) -> bytes:
    return b"".join(protocol.encode_event(e) for e in events)


def _stream(*events: protocol.AgentEvent) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=_sse(*events))


class ScriptedServer:
    """httpx.MockTransport handler answering each endpoint from a queue of canned responses."""

    def __init__(self, **replies: list[httpx.Response]) -> None:
        self.replies = {k: list(v) for k, v in replies.items()}
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        kind = {
            "/api/agent-execute": "start",
            "/api/agent-execute/continue": "continue",
            "/api/agent-execute/follow-up": "follow_up",
        }[path]
        self.requests.append((kind, json.loads(request.content or b"{}")))
        return self.replies[kind].pop(0)


def _echo_registry() -> ToolRegistry:
    async def echo(params):
        return ToolResult.ok({"echo": params})

    registry = ToolRegistry()
    registry.register(define_tool(name="echo", description="Echo", app_id="demo", properties={}, handler=echo))
    return registry


def _executor(handler, registry=None, **kwargs) -> tuple[AgentExecutor, AgentTransport]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = AgentTransport("http://agent.test", client=client)

    async def no_sleep(_s: float) -> None:
        return None

    executor = AgentExecutor(transport, registry or _echo_registry(), sleep=no_sleep, **kwargs)
    return executor, transport


class TestEndToEnd:
    def test_tool_round_trip_against_real_server(self, agent_server) -> None:
        fs = InMemoryFileSystem({"/notes/a.txt": "hello"})
        surfaces = SurfaceRegistry()
        surfaces.mount("file-browser")
        ui = UIUpdateExecutor(surfaces)

        async def scenario():
            transport = AgentTransport(agent_server.base_url)
            executor = AgentExecutor(transport, default_registry(fs), ui=ui)
            try:
                run = await executor.execute_intent("list my files")
                await ui.join()
            finally:
                await transport.aclose()
            return executor, run

        executor, run = asyncio.run(scenario())
        types = [e.type for e in run.history]
        assert types == [
            AgentEventType.AGENT_START,
            AgentEventType.TOOL_CALL,
            AgentEventType.TOOL_RESULT,
            AgentEventType.AGENT_COMPLETE,
        ]
        assert run.phase is RunPhase.COMPLETED
        assert run.completions == 1
        result = run.history[2].data["result"]
        assert result["success"] is True
        assert result["data"]["entries"] == ["notes"]
        assert run.history[2].data["uiUpdate"]["type"] == "file_browser_folder_expand"
        assert [e["type"] for e in surfaces.get("file-browser").effects] == ["file_browser_folder_expand"]

        record = executor.sessions.get(run.agent_session_id)
        assert record.status is RunStatus.COMPLETED
        assert record.server_session_id == run.server_session_id
        assert [e["type"] for e in record.history] == [t.value for t in types]
        assert executor.state.is_executing is False
        assert executor.state.data_version == 1

    def test_unknown_tool_ends_the_run(self, agent_server, gemini_stub) -> None:
        gemini_stub.enqueue(function_call_reply("file_browser_list_directory", {"path": "/"}))
        registry = _echo_registry()

        async def scenario():
            transport = AgentTransport(agent_server.base_url)
            try:
                return await AgentExecutor(transport, registry).execute_intent("do it")
            finally:
                await transport.aclose()

        run = asyncio.run(scenario())
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data["message"] == "Tool not found: file_browser_list_directory"
        assert all(e.type != AgentEventType.TOOL_RESULT for e in run.history)
        assert run.http_attempts["continue"] == 0


class TestScriptedRuns:
    def test_start_failure_status_is_reported(self) -> None:
        server = ScriptedServer(start=[httpx.Response(400, json={"error": "Missing intent"})])
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data == {"message": "Missing intent"}

    def test_continue_retried_once_on_server_error(self) -> None:
        server = ScriptedServer(
            start=[_stream(protocol.agent_start(intent="x", session_id="s1"), protocol.tool_call(tool_name="echo", args={"a": 1}, thinking=""))],
            **{
                "continue": [
                    httpx.Response(503),
                    _stream(protocol.agent_complete(message="finished")),
                ]
            },
        )
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.COMPLETED
        assert run.http_attempts["continue"] == 2
        continue_body = server.requests[1][1]
        assert continue_body == {"sessionId": "s1", "toolName": "echo", "toolResult": {"success": True, "data": {"echo": {"a": 1}}}}

    def test_continue_gives_up_after_second_failure(self) -> None:
        server = ScriptedServer(
            start=[_stream(protocol.agent_start(intent="x", session_id="s1"), protocol.tool_call(tool_name="echo", args={}, thinking=""))],
            **{"continue": [httpx.Response(502), httpx.Response(500)]},
        )
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data["message"] == "Request failed: 500"
        assert run.completions == 1

    def test_stream_without_terminal_event_is_an_error(self) -> None:
        server = ScriptedServer(start=[_stream(protocol.agent_start(intent="x", session_id="s1"))])
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert "terminal" in run.history[-1].data["message"]

    def test_unknown_events_are_ignored(self) -> None:
        body = b'event: heartbeat\ndata: {}\n\n' + _sse(protocol.agent_complete(message="ok"))
        server = ScriptedServer(start=[httpx.Response(200, content=body)])
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.COMPLETED
        assert [e.type for e in run.history] == [AgentEventType.AGENT_COMPLETE]

    def test_tool_exception_becomes_error_event(self) -> None:
        async def boom(params):
            raise RuntimeError("disk on fire")

        registry = ToolRegistry()
        registry.register(define_tool(name="boom", description="", app_id=None, properties={}, handler=boom))
        server = ScriptedServer(
            start=[_stream(protocol.agent_start(intent="x", session_id="s1"), protocol.tool_call(tool_name="boom", args={}, thinking=""))]
        )
        executor, _ = _executor(server, registry)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.history[-1].data == {"message": "disk on fire", "toolName": "boom"}
        assert run.status is RunStatus.ERROR

    def test_tool_returning_nothing_is_a_tool_error(self) -> None:
        async def silent(params):
            return None

        registry = ToolRegistry()
        registry.register(define_tool(name="silent", description="", app_id=None, properties={}, handler=silent))
        server = ScriptedServer(
            start=[_stream(protocol.agent_start(intent="x", session_id="s1"), protocol.tool_call(tool_name="silent", args={}, thinking=""))]
        )
        executor, _ = _executor(server, registry)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data["toolName"] == "silent"
        assert "NoneType" in run.history[-1].data["message"]
        assert run.completions == 1
        assert [kind for kind, _ in server.requests] == ["start"]
        assert executor.state.is_executing is False

    def test_blank_intent_finishes_without_a_request(self) -> None:
        server = ScriptedServer()
        executor, _ = _executor(server)
        run = asyncio.run(executor.execute_intent("   "))
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data == {"message": "Missing intent"}
        assert run.completions == 1
        assert run.agent_session_id is None
        assert server.requests == []
        assert executor.state.is_executing is False
        assert executor.sessions.sessions() == []

    def test_network_failure_finishes_run(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        executor, _ = _executor(handler)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert executor.state.is_executing is False

    def test_unexpected_failure_finishes_run(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport exploded")

        executor, _ = _executor(handler)
        run = asyncio.run(executor.execute_intent("x"))
        assert run.status is RunStatus.ERROR
        assert run.history[-1].data == {"message": "transport exploded"}
        assert run.completions == 1
        assert executor.state.is_executing is False

    def test_large_results_are_truncated_for_the_model_only(self) -> None:
        async def big(params):
            return ToolResult.ok({"blob": "x" * 20000})

        registry = ToolRegistry()
        registry.register(define_tool(name="big", description="", app_id=None, properties={}, handler=big))
        server = ScriptedServer(
            start=[_stream(protocol.agent_start(intent="x", session_id="s1"), protocol.tool_call(tool_name="big", args={}, thinking=""))],
            **{"continue": [_stream(protocol.agent_complete(message="ok"))]},
        )
        executor, _ = _executor(server, registry)
        run = asyncio.run(executor.execute_intent("x"))
        sent = server.requests[1][1]["toolResult"]["data"]
        assert sent["_truncated"] is True
        assert len(run.history[2].data["result"]["data"]["blob"]) == 20000


class TestFollowUp:
    def _seed(self, sessions: AgentSessionsStore, server_session_id: str) -> str:
        sid = sessions.create_session("first")
        sessions.update_session(sid, server_session_id=server_session_id, history=[{"type": "agent-start", "data": {}}])
        return sid

    def test_continue_session_uses_follow_up(self) -> None:
        sessions = AgentSessionsStore()
        agent_session_id = self._seed(sessions, "s1")
        server = ScriptedServer(
            follow_up=[_stream(protocol.agent_start(intent="again", session_id="s1"), protocol.agent_complete(message="ok"))]
        )
        executor, _ = _executor(server, sessions=sessions)
        run = asyncio.run(executor.execute_intent("again", continue_session=True))
        assert [k for k, _ in server.requests] == ["follow_up"]
        assert run.agent_session_id == agent_session_id
        record = sessions.get(agent_session_id)
        assert len(record.history) == 3
        assert record.status is RunStatus.COMPLETED

    def test_expired_server_session_falls_back_to_start(self) -> None:
        sessions = AgentSessionsStore()
        agent_session_id = self._seed(sessions, "gone")
        server = ScriptedServer(
            follow_up=[httpx.Response(404, json={"error": "Session not found or expired"})],
            start=[_stream(protocol.agent_start(intent="again", session_id="s2"), protocol.agent_complete(message="ok"))],
        )
        executor, _ = _executor(server, sessions=sessions)
        run = asyncio.run(executor.execute_intent("again", continue_session=True))
        assert [k for k, _ in server.requests] == ["follow_up", "start"]
        assert "toolDefinitions" in server.requests[1][1]
        assert run.status is RunStatus.COMPLETED
        assert sessions.get(agent_session_id).server_session_id == "s2"


class TestAgentStateStore:
    def test_superseded_run_cannot_write(self) -> None:
        state = AgentStateStore()
        old = state.start_execution("first")
        new = state.start_execution("second")
        assert state.add_event(protocol.agent_complete(message="late"), generation=old) is False
        assert state.complete_execution(generation=old) is False
        assert state.is_executing is True
        assert state.current_intent == "second"
        assert state.add_event(protocol.agent_start(intent="second", session_id="s"), generation=new)
        assert len(state.execution_history) == 1

    def test_tool_result_bumps_data_version(self) -> None:
        state = AgentStateStore()
        gen = state.start_execution("x")
        state.add_event(protocol.tool_result(tool_name="t", args={}, result={"success": True}), generation=gen)
        assert state.data_version == 1
        assert state.last_tool_call.tool_name == "t"


class TestSanitize:
    def test_small_data_unchanged(self) -> None:
        data = {"a": [1, 2, 3]}
        assert truncate_data(data, max_chars=100) is data

    def test_large_data_summarized(self) -> None:
        out = truncate_data({"blob": "y" * 200}, max_chars=50)
        assert out["_truncated"] is True
        assert out["_originalLength"] > 50
        assert out["summary"].endswith(TRUNCATION_MARKER)

    def test_ui_updates_never_sent_upstream(self) -> None:
        from agentdesk.runtime.models.ui_updates import Flash

        payload = result_for_model(ToolResult.ok({"a": 1}, ui_update=Flash(target_id="n")))
        assert payload == {"success": True, "data": {"a": 1}}
        assert result_for_model(ToolResult.fail("nope")) == {"success": False, "error": "nope"}
