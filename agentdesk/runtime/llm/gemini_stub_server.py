from __future__ import annotations

import json
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

_INVALID_KEY_BODY = {
    "error": {
        "code": 400,
        "message": "API key not valid. Please pass a valid API key.",
        "status": "INVALID_ARGUMENT",
        "details": [{"reason": "API_KEY_INVALID"}],
    }
}


def _read_json_body(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    length_raw = handler.headers.get("content-length")
    try:
        length = int(length_raw) if length_raw else 0
    except ValueError:
        length = 0
    body = handler.rfile.read(max(0, length)) if length > 0 else b""
    try:
        data = json.loads(body.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _json_response(handler: BaseHTTPRequestHandler, status: int, payload: dict[str, Any]) -> None:
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("content-type", "application/json; charset=utf-8")
    handler.send_header("content-length", str(len(data)))
    handler.end_headers()
    handler.wfile.write(data)


def text_reply(text: str) -> dict[str, Any]:
    return {"parts": [{"text": text}]}


def function_call_reply(name: str, args: dict[str, Any] | None = None, *, text: str | None = None) -> dict[str, Any]:
    parts: list[dict[str, Any]] = []
    if text:
        parts.append({"text": text})
    parts.append({"functionCall": {"name": name, "args": dict(args or {})}})
    return {"parts": parts}


def _last_user_parts(contents: Any) -> list[dict[str, Any]]:
    if not isinstance(contents, list):
        return []
    for item in reversed(contents):
        if isinstance(item, dict) and item.get("role") == "user":
            parts = item.get("parts")
            return [p for p in parts if isinstance(p, dict)] if isinstance(parts, list) else []
    return []


def _declared_tools(req: dict[str, Any]) -> list[str]:
    names: list[str] = []
    for tool in req.get("tools") or []:
        if not isinstance(tool, dict):
            continue
        for decl in tool.get("functionDeclarations") or []:
            if isinstance(decl, dict) and isinstance(decl.get("name"), str):
                names.append(decl["name"])
    return names


def _default_reply(req: dict[str, Any]) -> dict[str, Any]:
    last = _last_user_parts(req.get("contents"))
    if any("functionResponse" in p for p in last):
        return text_reply("Done.")
    tools = _declared_tools(req)
    if not tools:
        return text_reply("stub: ok")
    if "file_browser_list_directory" in tools:
        return function_call_reply("file_browser_list_directory", {"path": "/"}, text="Listing the root folder.")
    return function_call_reply(tools[0], {})


class _GeminiStubHandler(BaseHTTPRequestHandler):
    server_version = "AgentdeskGeminiStub/0.1"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        # Keep test runs quiet by default.
        return

    @property
    def stub(self) -> "GeminiStubServer":
        return self.server.stub  # type: ignore[attr-defined]

    def do_GET(self) -> None:  # noqa: N802
        if self.path.rstrip("/") in {"/health", "/v1beta/health"}:
            _json_response(self, 200, {"ok": True})
            return
        _json_response(self, 404, {"error": {"message": "not found"}})

    def do_POST(self) -> None:  # noqa: N802
        if ":generateContent" not in self.path:
            _json_response(self, 404, {"error": {"message": "not found"}})
            return

        req = _read_json_body(self)
        stub = self.stub
        api_key = self.headers.get("x-goog-api-key") or ""
        with stub._lock:
            stub.requests.append(req)
            if stub.valid_api_key is not None and api_key != stub.valid_api_key:
                reply = None
            else:
                reply = stub._replies.popleft() if stub._replies else _default_reply(req)

        if reply is None:
            _json_response(self, 400, _INVALID_KEY_BODY)
            return
        if isinstance(reply.get("status"), int):
            _json_response(self, int(reply["status"]), {"error": {"message": str(reply.get("message") or "stub error")}})
            return

        resp = {
            "candidates": [
                {
                    "content": {"role": "model", "parts": reply.get("parts") or [{"text": ""}]},
                    "finishReason": "STOP",
                    "index": 0,
                }
            ],
            "modelVersion": "stub",
            "responseId": f"stub_{int(time.time() * 1000)}",
            "usageMetadata": {"promptTokenCount": 1, "candidatesTokenCount": 1, "totalTokenCount": 2},
        }
        _json_response(self, 200, resp)


@dataclass(slots=True)
class GeminiStubServer:
    """
    Local `generateContent` endpoint with scripted replies.

    Replies queued via `enqueue()` are served first, in order; afterwards the stub calls the
    first declared tool once and then answers "Done.". A reply of `{"status": 503}` produces an
    HTTP error instead of a candidate.
    """

    host: str = "127.0.0.1"
    port: int = 0
    valid_api_key: str | None = None
    requests: list[dict[str, Any]] = field(default_factory=list)

    _replies: deque = field(default_factory=deque)
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _server: ThreadingHTTPServer | None = None
    _thread: threading.Thread | None = None

    def enqueue(self, *replies: dict[str, Any]) -> None:
        with self._lock:
            self._replies.extend(replies)

    def start(self) -> None:
        if self._server is not None:
            return
        httpd = ThreadingHTTPServer((self.host, int(self.port)), _GeminiStubHandler)
        httpd.stub = self  # type: ignore[attr-defined]
        self._server = httpd
        self.port = int(httpd.server_address[1])
        t = threading.Thread(target=httpd.serve_forever, name="gemini-stub", daemon=True)
        self._thread = t
        t.start()

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

    def __enter__(self) -> "GeminiStubServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.stop()
