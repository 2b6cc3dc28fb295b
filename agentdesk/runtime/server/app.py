from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from pydantic import ValidationError

from .. import protocol
from ..config import ServerConfig
from ..llm.chat import MessageInput, ModelService
from ..llm.errors import error_event_payload
from ..llm.providers.gemini import function_response_part
from ..llm.secrets import find_api_key
from ..models.tool_spec import ToolDefinition
from ..protocol import AgentEvent
from .attachments import compose_turn_text, parse_attached_files
from .prompts import build_system_instruction
from .rate_limit import FixedWindowRateLimiter, client_key
from .session_store import ServerSession, SessionStore

logger = logging.getLogger(__name__)

START_PATH = "/api/agent-execute"
CONTINUE_PATH = "/api/agent-execute/continue"
FOLLOW_UP_PATH = "/api/agent-execute/follow-up"
HEALTH_PATH = "/health"

_NO_RESULT = {"success": False, "error": "No result"}


@dataclass(frozen=True, slots=True)
class JsonReply:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StreamReply:
    events: Iterator[AgentEvent]


Reply = JsonReply | StreamReply


def _parse_json_body(raw: bytes) -> dict[str, Any] | None:
    try:
        data = json.loads(raw.decode("utf-8")) if raw else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _trimmed(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_tool_definitions(raw: Any) -> list[ToolDefinition]:
    if not isinstance(raw, list):
        return []
    out: list[ToolDefinition] = []
    for item in raw:
        try:
            out.append(ToolDefinition.model_validate(item))
        except ValidationError as e:
            logger.warning("dropping invalid tool definition: %s", e.errors()[0].get("msg") if e.errors() else e)
    return out


class AgentApp:
    """
    The three streaming protocol operations over a shared session table.

    Each operation validates its body, sweeps expired sessions, and returns either a
    non-streaming JSON reply or a stream that performs exactly one model turn.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        model: ModelService,
        sessions: SessionStore | None = None,
        credential_lookup: Callable[[], str | None] | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
    ) -> None:
        self._config = config
        self._model = model
        self._sessions = sessions or SessionStore(ttl_s=config.session_ttl_s)
        self._credential_lookup = credential_lookup or (lambda: find_api_key(config.model.api_key_env))
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter(limit=config.rate_limit_per_minute)

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def check_rate(self, headers: Any) -> JsonReply | None:
        decision = self._rate_limiter.check(client_key(headers))
        if decision.allowed:
            return None
        return JsonReply(
            429,
            {"error": "Too many requests", "retryAfter": decision.retry_after_s},
            headers={"Retry-After": str(decision.retry_after_s)},
        )

    def start(self, raw_body: bytes) -> Reply:
        if not self._credential_lookup():
            return JsonReply(500, {"error": "GEMINI_API_KEY is not configured"})
        body = _parse_json_body(raw_body)
        if body is None:
            return JsonReply(400, {"error": "Invalid JSON body"})
        intent = _trimmed(body.get("intent"))
        if not intent:
            return JsonReply(400, {"error": "Missing intent"})
        tools = _parse_tool_definitions(body.get("toolDefinitions"))
        files = parse_attached_files(body.get("attachedFiles"))
        client_session_id = _trimmed(body.get("sessionId"))

        self._sessions.sweep()
        return StreamReply(self._start_stream(intent, tools, compose_turn_text(intent, files), client_session_id))

    def continue_(self, raw_body: bytes) -> Reply:
        body = _parse_json_body(raw_body)
        if body is None:
            return JsonReply(400, {"error": "Invalid JSON body"})
        session_id = _trimmed(body.get("sessionId"))
        tool_name = _trimmed(body.get("toolName"))
        if not session_id or not tool_name:
            return JsonReply(400, {"error": "Missing sessionId or toolName"})
        tool_result = body.get("toolResult")
        if tool_result is None:
            tool_result = dict(_NO_RESULT)

        self._sessions.sweep()
        session = self._lookup(session_id)
        if session is None:
            return JsonReply(404, {"error": "Session not found or expired"})
        part = function_response_part(name=tool_name, response=tool_result)
        return StreamReply(self._turn_stream(session, [part], opening=None))

    def follow_up(self, raw_body: bytes) -> Reply:
        body = _parse_json_body(raw_body)
        if body is None:
            return JsonReply(400, {"error": "Invalid JSON body"})
        session_id = _trimmed(body.get("sessionId"))
        intent = _trimmed(body.get("intent"))
        files = parse_attached_files(body.get("attachedFiles"))
        if not session_id or not intent:
            return JsonReply(400, {"error": "Missing sessionId or intent"})

        self._sessions.sweep()
        session = self._lookup(session_id)
        if session is None:
            return JsonReply(404, {"error": "Session not found or expired"})
        opening = protocol.agent_start(intent=intent, session_id=session_id)
        return StreamReply(self._turn_stream(session, compose_turn_text(intent, files), opening=opening))

    def health(self) -> JsonReply:
        return JsonReply(200, {"ok": True, "sessions": len(self._sessions)})

    def _lookup(self, session_id: str) -> ServerSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.touch(session_id)
        return session

    def _start_stream(
        self,
        intent: str,
        tools: list[ToolDefinition],
        message: str,
        client_session_id: str,
    ) -> Iterator[AgentEvent]:
        try:
            chat = self._model.start_chat(
                system_instruction=build_system_instruction(intent, tools),
                tools=[t.to_function_declaration() for t in tools],
            )
            session_id = self._sessions.create(chat, session_id=client_session_id or None)
        except Exception as e:  # noqa: BLE001
            logger.warning("failed to open model conversation: %s", e)
            yield protocol.error(**error_event_payload(e))
            return
        session = self._sessions.get(session_id)
        if session is None:
            yield protocol.error("Session not found or expired")
            return
        yield from self._turn_stream(session, message, opening=protocol.agent_start(intent=intent, session_id=session_id))

    def _turn_stream(
        self,
        session: ServerSession,
        message: MessageInput,
        *,
        opening: AgentEvent | None,
    ) -> Iterator[AgentEvent]:
        if opening is not None:
            yield opening
        try:
            yield self._model_turn(session, message)
        except Exception as e:  # noqa: BLE001
            logger.warning("model turn failed for %s: %s", session.session_id, e)
            yield protocol.error(**error_event_payload(e))

    def _model_turn(self, session: ServerSession, message: MessageInput) -> AgentEvent:
        if session.turns >= self._config.max_iterations:
            return protocol.agent_timeout()
        session.turns += 1
        response = session.chat.send_message(message)
        if response.tool_calls:
            call = response.tool_calls[0]
            return protocol.tool_call(
                tool_name=call.name,
                args=call.arguments,
                thinking=response.text or f"Calling {call.name}...",
            )
        return protocol.agent_complete(message=response.text or "Done.", iterations=1)


class _AgentRequestHandler(BaseHTTPRequestHandler):
    server_version = "Agentdesk/0.3"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        logger.debug("%s - %s", self.address_string(), format % args)

    @property
    def app(self) -> AgentApp:
        return self.server.app  # type: ignore[attr-defined]

    def do_GET(self) -> None:  # noqa: N802
        if self.path.split("?", 1)[0].rstrip("/") == HEALTH_PATH:
            self._send_json(self.app.health())
            return
        self._send_json(JsonReply(404, {"error": "Not found"}))

    def do_POST(self) -> None:  # noqa: N802
        path = self.path.split("?", 1)[0].rstrip("/")
        routes = {
            START_PATH: self.app.start,
            CONTINUE_PATH: self.app.continue_,
            FOLLOW_UP_PATH: self.app.follow_up,
        }
        route = routes.get(path)
        if route is None:
            self._send_json(JsonReply(404, {"error": "Not found"}))
            return
        limited = self.app.check_rate(self.headers)
        if limited is not None:
            self._send_json(limited)
            return
        reply = route(self._read_body())
        if isinstance(reply, JsonReply):
            self._send_json(reply)
        else:
            self._send_stream(reply)

    def _read_body(self) -> bytes:
        length_raw = self.headers.get("content-length")
        try:
            length = int(length_raw) if length_raw else 0
        except ValueError:
            length = 0
        return self.rfile.read(length) if length > 0 else b""

    def _send_json(self, reply: JsonReply) -> None:
        data = json.dumps(reply.body, ensure_ascii=False).encode("utf-8")
        self.send_response(reply.status)
        self.send_header("content-type", "application/json")
        self.send_header("content-length", str(len(data)))
        for name, value in reply.headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(data)

    def _send_stream(self, reply: StreamReply) -> None:
        self.send_response(200)
        self.send_header("content-type", protocol.SSE_CONTENT_TYPE)
        self.send_header("cache-control", "no-cache")
        self.send_header("connection", "close")
        self.end_headers()
        self.close_connection = True
        try:
            for event in reply.events:
                self.wfile.write(protocol.encode_event(event))
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.info("client disconnected mid-stream")


@dataclass(slots=True)
class AgentServer:
    """Threaded HTTP front for an `AgentApp`; `port=0` picks a free port."""

    app: AgentApp
    host: str = "127.0.0.1"
    port: int = 0

    _server: ThreadingHTTPServer | None = None
    _thread: threading.Thread | None = None

    def _bind(self) -> ThreadingHTTPServer:
        httpd = ThreadingHTTPServer((self.host, int(self.port)), _AgentRequestHandler)
        httpd.daemon_threads = True
        httpd.app = self.app  # type: ignore[attr-defined]
        self._server = httpd
        self.port = int(httpd.server_address[1])
        return httpd

    def start(self) -> None:
        if self._server is not None:
            return
        httpd = self._bind()
        t = threading.Thread(target=httpd.serve_forever, name="agentdesk-server", daemon=True)
        self._thread = t
        t.start()

    def serve_forever(self) -> None:
        httpd = self._server or self._bind()
        logger.info("listening on %s", self.base_url)
        try:
            httpd.serve_forever()
        finally:
            httpd.server_close()
            self._server = None

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __enter__(self) -> "AgentServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.stop()
