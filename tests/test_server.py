from __future__ import annotations

import json

import httpx

from agentdesk.runtime.llm.gemini_stub_server import function_call_reply, text_reply
from agentdesk.runtime.protocol import iter_frames
from agentdesk.runtime.server import AgentServer, JsonReply
from agentdesk.runtime.server.app import CONTINUE_PATH, FOLLOW_UP_PATH, START_PATH

from conftest import build_app

LIST_DIR_TOOL = {
    "name": "file_browser_list_directory",
    "description": "List files and folders in a directory path",
    "appId": "file-browser",
    "parameters": {
        "type": "object",
        "properties": {"path": {"type": "string", "description": "Directory path"}},
        "required": ["path"],
    },
}


def _post(server: AgentServer, path: str, body: object) -> httpx.Response:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return httpx.post(
        f"{server.base_url}{path}",
        content=raw,
        headers={"content-type": "application/json"},
        timeout=10.0,
    )


def _events(response: httpx.Response) -> list[tuple[str, dict]]:
    return [(f.event, f.data) for f in iter_frames([response.content])]


def _start(server: AgentServer, intent: str = "list my files", **extra) -> tuple[str, list[tuple[str, dict]]]:
    response = _post(server, START_PATH, {"intent": intent, "toolDefinitions": [LIST_DIR_TOOL], **extra})
    assert response.status_code == 200
    events = _events(response)
    assert events[0][0] == "agent-start"
    return events[0][1]["sessionId"], events


class TestValidation:
    def test_health(self, agent_server) -> None:
        response = httpx.get(f"{agent_server.base_url}/health", timeout=5.0)
        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_missing_intent(self, agent_server) -> None:
        response = _post(agent_server, START_PATH, {"intent": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing intent"}

    def test_invalid_json(self, agent_server) -> None:
        response = _post(agent_server, START_PATH, b"{nope")
        assert response.status_code == 400

    def test_continue_requires_session_and_tool(self, agent_server) -> None:
        response = _post(agent_server, CONTINUE_PATH, {"sessionId": "x"})
        assert response.status_code == 400

    def test_continue_unknown_session(self, agent_server) -> None:
        response = _post(agent_server, CONTINUE_PATH, {"sessionId": "agent-missing", "toolName": "t", "toolResult": {}})
        assert response.status_code == 404
        assert response.json() == {"error": "Session not found or expired"}

    def test_follow_up_unknown_session(self, agent_server) -> None:
        response = _post(agent_server, FOLLOW_UP_PATH, {"sessionId": "agent-missing", "intent": "more"})
        assert response.status_code == 404

    def test_unknown_route(self, agent_server) -> None:
        assert _post(agent_server, "/api/other", {}).status_code == 404

    def test_missing_credential(self, gemini_stub) -> None:
        app, model = build_app(gemini_stub, credential=None)
        try:
            reply = app.start(json.dumps({"intent": "x"}).encode())
        finally:
            model.close()
        assert isinstance(reply, JsonReply)
        assert reply.status == 500


class TestStreams:
    def test_start_emits_agent_start_then_tool_call(self, agent_server) -> None:
        response = _post(agent_server, START_PATH, {"intent": "list my files", "toolDefinitions": [LIST_DIR_TOOL]})
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        events = _events(response)
        assert [e for e, _ in events] == ["agent-start", "tool-call"]
        assert events[0][1]["intent"] == "list my files"
        assert events[1][1]["toolName"] == "file_browser_list_directory"
        assert events[1][1]["args"] == {"path": "/"}
        assert events[1][1]["thinking"]

    def test_continue_completes(self, agent_server, gemini_stub) -> None:
        session_id, _ = _start(agent_server)
        response = _post(
            agent_server,
            CONTINUE_PATH,
            {
                "sessionId": session_id,
                "toolName": "file_browser_list_directory",
                "toolResult": {"success": True, "data": {"entries": []}},
            },
        )
        events = _events(response)
        assert events == [("agent-complete", {"message": "Done.", "iterations": 1})]
        last_parts = gemini_stub.requests[-1]["contents"][-1]["parts"]
        assert last_parts[0]["functionResponse"]["name"] == "file_browser_list_directory"

    def test_follow_up_reuses_conversation(self, agent_server, gemini_stub) -> None:
        session_id, _ = _start(agent_server)
        gemini_stub.enqueue(text_reply("All set."))
        response = _post(agent_server, FOLLOW_UP_PATH, {"sessionId": session_id, "intent": "anything else?"})
        events = _events(response)
        assert events[0] == ("agent-start", {"intent": "anything else?", "sessionId": session_id})
        assert events[1] == ("agent-complete", {"message": "All set.", "iterations": 1})
        assert len(gemini_stub.requests[-1]["contents"]) == 3

    def test_attached_files_are_prepended(self, agent_server, gemini_stub) -> None:
        _start(agent_server, attachedFiles=[{"path": "a.txt", "content": "alpha"}, {"content": "no path"}])
        text = gemini_stub.requests[-1]["contents"][0]["parts"][0]["text"]
        assert text.startswith("Goal: list my files")
        assert "--- File: a.txt ---\nalpha" in text
        assert "no path" not in text

    def test_model_failure_becomes_error_event(self, agent_server, gemini_stub) -> None:
        gemini_stub.enqueue({"status": 503, "message": "overloaded"})
        _, events = _start(agent_server)
        assert events[-1][0] == "error"
        assert events[-1][1]["message"]

    def test_invalid_api_key(self, gemini_stub) -> None:
        app, model = build_app(gemini_stub, api_key="wrong-key")
        with AgentServer(app) as server:
            _, events = _start(server)
        model.close()
        assert events[-1][0] == "error"
        assert events[-1][1]["code"] == "API_KEY_INVALID"

    def test_iteration_limit_times_out(self, gemini_stub) -> None:
        app, model = build_app(gemini_stub, max_iterations=1)
        with AgentServer(app) as server:
            session_id, events = _start(server)
            assert events[-1][0] == "tool-call"
            gemini_stub.enqueue(function_call_reply("file_browser_list_directory", {"path": "/"}))
            response = _post(
                server,
                CONTINUE_PATH,
                {"sessionId": session_id, "toolName": "file_browser_list_directory", "toolResult": {"success": True}},
            )
        model.close()
        assert _events(response) == [("agent-timeout", {"message": "Maximum iterations reached"})]

    def test_rate_limit(self, gemini_stub) -> None:
        app, model = build_app(gemini_stub, rate_limit_per_minute=1)
        with AgentServer(app) as server:
            assert _post(server, START_PATH, {"intent": " "}).status_code == 400
            limited = _post(server, START_PATH, {"intent": "again"})
        model.close()
        assert limited.status_code == 429
        assert int(limited.headers["retry-after"]) >= 1
        assert limited.json()["error"] == "Too many requests"
