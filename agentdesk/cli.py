from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from . import __version__
from .runtime.config import ClientConfig, ServerConfig

if TYPE_CHECKING:
    from .runtime.client import AgentSessionsStore

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_TIMEOUT = 2
EXIT_CONFIG_ERROR = 5

DEFAULT_SESSIONS_PATH = Path.home() / ".agentdesk" / "agent-sessions.json"

# Window ids mounted by `agentdesk run`. List effects address "<id>-list" (todo) and "<id>-event-list" (calendar).
_RUN_SURFACES = (
    "file-browser",
    "notes",
    "code-editor",
    "todo-list",
    "calendar",
    "calendar-event-list",
    "timer",
    "email",
    "whiteboard",
)


def _configure_text_io() -> None:
    """Best-effort UTF-8 terminal I/O so event payloads with non-ASCII text print cleanly."""

    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="backslashreplace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="backslashreplace")
    except (OSError, ValueError):
        return


def _sessions_path(cfg: ClientConfig) -> Path:
    return Path(cfg.sessions_path).expanduser() if cfg.sessions_path else DEFAULT_SESSIONS_PATH


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentdesk",
        description="Streaming agent server and tool-executing client.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the agent HTTP server.")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: AGENTDESK_HOST or 127.0.0.1).")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: AGENTDESK_PORT or 3000).")
    serve_parser.add_argument(
        "--stub",
        action="store_true",
        help="Answer with a local scripted Gemini stub instead of the real API (no key needed).",
    )
    serve_parser.set_defaults(func=_cmd_serve)

    run_parser = subparsers.add_parser("run", help="Execute one intent against a running server.")
    run_parser.add_argument("intent", help="What the agent should do.")
    run_parser.add_argument("--server", default=None, help="Server base URL (default: AGENTDESK_SERVER_URL).")
    run_parser.add_argument(
        "--continue",
        dest="continue_session",
        action="store_true",
        help="Continue the active agent session instead of starting a new one.",
    )
    run_parser.add_argument(
        "--attach",
        action="append",
        default=[],
        metavar="PATH",
        help="Attach a local text file to the intent (repeatable).",
    )
    run_parser.set_defaults(func=_cmd_run)

    sessions_parser = subparsers.add_parser("sessions", help="List saved agent sessions.")
    sessions_parser.set_defaults(func=_cmd_sessions)

    return parser


def _cmd_serve(args: argparse.Namespace) -> int:
    from .runtime.llm.chat import GeminiModelService
    from .runtime.llm.gemini_stub_server import GeminiStubServer
    from .runtime.server import AgentApp, AgentServer

    try:
        cfg = ServerConfig.from_env()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    if args.host:
        cfg = replace(cfg, host=args.host)
    if args.port is not None:
        cfg = replace(cfg, port=args.port)

    stub: GeminiStubServer | None = None
    if args.stub:
        stub = GeminiStubServer()
        stub.start()
        cfg = replace(cfg, model=replace(cfg.model, base_url=stub.base_url))
        model = GeminiModelService(cfg.model, api_key="stub")
        app = AgentApp(cfg, model=model, credential_lookup=lambda: "stub")
    else:
        model = GeminiModelService(cfg.model)
        app = AgentApp(cfg, model=model)

    server = AgentServer(app, host=cfg.host, port=cfg.port)
    print(f"agentdesk listening on http://{cfg.host}:{cfg.port}", file=sys.stderr)
    try:
        server.serve_forever()
    finally:
        model.close()
        if stub is not None:
            stub.stop()
    return EXIT_OK


def _read_attachments(paths: list[str]) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for raw in paths:
        p = Path(raw).expanduser()
        out.append({"path": p.name, "content": p.read_text(encoding="utf-8")})
    return out


async def _run_intent(args: argparse.Namespace, cfg: ClientConfig, sessions: AgentSessionsStore) -> int:
    from .runtime.client import AgentExecutor, AgentTransport
    from .runtime.models.status import RunStatus
    from .runtime.tools import InMemoryFileSystem, default_registry
    from .runtime.ui import SurfaceRegistry, UIUpdateExecutor

    surfaces = SurfaceRegistry()
    for surface_id in _RUN_SURFACES:
        surfaces.mount(surface_id)
    ui = UIUpdateExecutor(surfaces)

    fs = InMemoryFileSystem({"/notes/welcome.txt": "Welcome to agentdesk.\n"})
    registry = default_registry(fs)
    transport = AgentTransport(args.server or cfg.base_url, timeout_s=cfg.timeout_s)
    executor = AgentExecutor(
        transport,
        registry,
        ui=ui,
        sessions=sessions,
        continue_backoff_s=cfg.continue_retry_backoff_s,
        max_result_chars=cfg.max_result_chars,
    )
    try:
        run = await executor.execute_intent(
            args.intent,
            continue_session=bool(args.continue_session),
            attached_files=_read_attachments(args.attach) or None,
        )
        await ui.join()
    finally:
        await transport.aclose()
        sessions.save()

    for event in run.history:
        print(json.dumps(event.to_dict(), ensure_ascii=False))
    if run.status is RunStatus.COMPLETED:
        return EXIT_OK
    if run.status is RunStatus.TIMEOUT:
        return EXIT_TIMEOUT
    return EXIT_ERROR


def _cmd_run(args: argparse.Namespace) -> int:
    from .runtime.client import AgentSessionsStore

    try:
        cfg = ClientConfig.from_env()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    sessions = AgentSessionsStore(path=_sessions_path(cfg))
    try:
        sessions.load()
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    try:
        return asyncio.run(_run_intent(args, cfg, sessions))
    except OSError as e:
        print(str(e), file=sys.stderr)
        return EXIT_ERROR


def _cmd_sessions(_: argparse.Namespace) -> int:
    from .runtime.client import AgentSessionsStore

    try:
        cfg = ClientConfig.from_env()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    store = AgentSessionsStore(path=_sessions_path(cfg))
    try:
        store.load()
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    active = store.active_session_id
    for s in store.sessions():
        marker = "*" if s.id == active else " "
        star = " fav" if s.is_favorite else ""
        print(f"{marker} {s.id}\tstatus={s.status.value}\tevents={len(s.history)}{star}\t{s.label}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    _configure_text_io()
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        func = getattr(args, "func")
        return int(func(args))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
