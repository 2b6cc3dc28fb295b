from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..ids import new_id
from ..models.status import RunPhase, RunStatus, is_terminal_phase, status_for_phase, validate_phase_transition
from ..models.tool_result import ToolResult
from ..protocol import AgentEvent, AgentEventType, aiter_frames
from ..protocol import error as error_event
from ..protocol import tool_result as tool_result_event
from ..tools.registry import ToolRegistry
from ..ui.executor import UIUpdateExecutor
from .sanitize import MAX_RESULT_CHARS, result_for_model
from .sessions import AgentSessionsStore
from .state import AgentStateStore
from .transport import AgentTransport, SessionNotFoundError, error_message

logger = logging.getLogger(__name__)

_TERMINAL_PHASES: dict[AgentEventType, RunPhase] = {
    AgentEventType.AGENT_COMPLETE: RunPhase.COMPLETED,
    AgentEventType.AGENT_TIMEOUT: RunPhase.TIMED_OUT,
    AgentEventType.ERROR: RunPhase.ERRORED,
}


@dataclass(slots=True)
class AgentRun:
    run_id: str
    intent: str
    agent_session_id: str | None = None
    history: list[AgentEvent] = field(default_factory=list)
    phase: RunPhase = RunPhase.IDLE
    server_session_id: str | None = None
    http_attempts: dict[str, int] = field(default_factory=lambda: {"start": 0, "continue": 0, "follow_up": 0})
    completions: int = 0

    @property
    def status(self) -> RunStatus:
        return status_for_phase(self.phase)

    @property
    def is_executing(self) -> bool:
        return self.phase is not RunPhase.IDLE and not is_terminal_phase(self.phase)

    def advance(self, phase: RunPhase) -> None:
        validate_phase_transition(before=self.phase, after=phase)
        self.phase = phase


@dataclass(frozen=True, slots=True)
class _PendingCall:
    tool_name: str
    args: dict[str, Any]


class AgentExecutor:
    """
    Client side of the agent protocol.

    Drives one run from Start through a terminal event: reads each event stream, executes
    requested tools locally, plays their UI updates, and resumes the server conversation with
    each (summarized) result. Every exit path funnels through `_finish`, exactly once per run.
    """

    def __init__(
        self,
        transport: AgentTransport,
        registry: ToolRegistry,
        *,
        ui: UIUpdateExecutor | None = None,
        state: AgentStateStore | None = None,
        sessions: AgentSessionsStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        continue_backoff_s: float = 0.8,
        max_result_chars: int = MAX_RESULT_CHARS,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._ui = ui
        self._state = state or AgentStateStore()
        self._sessions = sessions or AgentSessionsStore()
        self._sleep = sleep
        self._continue_backoff_s = continue_backoff_s
        self._max_result_chars = max_result_chars

    @property
    def state(self) -> AgentStateStore:
        return self._state

    @property
    def sessions(self) -> AgentSessionsStore:
        return self._sessions

    async def execute_intent(
        self,
        intent: str,
        *,
        continue_session: bool = False,
        attached_files: list[dict[str, str]] | None = None,
    ) -> AgentRun:
        intent = str(intent or "").strip()
        run = AgentRun(run_id=new_id("run"), intent=intent)
        generation = self._state.start_execution(intent)
        prior_history: list[dict[str, Any]] = []
        if not intent:
            ctx = _RunContext(run=run, generation=generation, prior_history=prior_history)
            run.advance(RunPhase.STARTING)
            self._finish(ctx, RunPhase.ERRORED, error_event("Missing intent"))
            return run

        record = self._sessions.active_session() if continue_session else None
        if record is not None:
            run.agent_session_id = record.id
            run.server_session_id = record.server_session_id
            prior_history = list(record.history)
            self._state.set_execution_history(
                [AgentEvent.from_dict(e) for e in prior_history if _is_known_event(e)],
                generation=generation,
            )
            self._sessions.update_session(record.id, status=RunStatus.RUNNING)
        else:
            run.agent_session_id = self._sessions.create_session(intent)

        ctx = _RunContext(run=run, generation=generation, prior_history=prior_history)
        run.advance(RunPhase.STARTING)
        try:
            await self._drive(ctx, attached_files=attached_files)
        except httpx.HTTPError as e:
            logger.warning("run %s: network failure: %s", run.run_id, e)
            self._finish(ctx, RunPhase.ERRORED, error_event(str(e) or "Network error"))
        except Exception as e:  # noqa: BLE001
            logger.exception("run %s: unexpected failure", run.run_id)
            self._finish(ctx, RunPhase.ERRORED, error_event(str(e) or "Unexpected error"))
        finally:
            if not is_terminal_phase(run.phase):
                self._finish(ctx, RunPhase.ERRORED, error_event("Run ended unexpectedly"))
        return run

    async def _drive(self, ctx: _RunContext, *, attached_files: list[dict[str, str]] | None) -> None:
        run = ctx.run
        response = await self._open(ctx, attached_files=attached_files)
        while True:
            pending = await self._read_stream(ctx, response)
            if pending is None:
                return

            run.advance(RunPhase.TOOL_CALL_RECEIVED)
            tool = self._registry.get(pending.tool_name) if pending.tool_name else None
            if tool is None:
                message = f"Tool not found: {pending.tool_name}" if pending.tool_name else "Missing tool name"
                self._finish(ctx, RunPhase.ERRORED, error_event(message))
                return

            run.advance(RunPhase.EXECUTING)
            try:
                result = await tool.execute(pending.args)
                if isinstance(result, dict):
                    result = ToolResult.model_validate(result)
                if not isinstance(result, ToolResult):
                    raise TypeError(f"{pending.tool_name} returned {type(result).__name__}, expected a tool result")
            except Exception as e:  # noqa: BLE001
                logger.warning("run %s: tool %s raised: %s", run.run_id, pending.tool_name, e)
                self._finish(
                    ctx,
                    RunPhase.ERRORED,
                    error_event(str(e) or "Tool execution failed", toolName=pending.tool_name),
                )
                return

            wire_result = result.to_wire()
            self._record(
                ctx,
                tool_result_event(
                    tool_name=pending.tool_name,
                    args=pending.args,
                    result=wire_result,
                    ui_update=wire_result.get("uiUpdate"),
                ),
            )
            if self._ui is not None:
                for update in result.ui_updates():
                    self._ui.submit(update)

            run.advance(RunPhase.CONTINUING)
            response = await self._continue(ctx, pending.tool_name, result)
            if response is None:
                return

    async def _open(self, ctx: _RunContext, *, attached_files: list[dict[str, str]] | None) -> httpx.Response:
        run = ctx.run
        if run.server_session_id:
            body: dict[str, Any] = {"sessionId": run.server_session_id, "intent": run.intent}
            if attached_files:
                body["attachedFiles"] = list(attached_files)
            run.http_attempts["follow_up"] += 1
            try:
                return await self._transport.follow_up(body)
            except SessionNotFoundError:
                logger.info("run %s: server session %s expired; starting fresh", run.run_id, run.server_session_id)
                run.server_session_id = None
                if run.agent_session_id:
                    self._sessions.update_session(run.agent_session_id, server_session_id=None)

        body = {"intent": run.intent, "toolDefinitions": self._registry.definitions_for_model()}
        if attached_files:
            body["attachedFiles"] = list(attached_files)
        run.http_attempts["start"] += 1
        return await self._transport.start(body)

    async def _continue(self, ctx: _RunContext, tool_name: str, result: ToolResult) -> httpx.Response | None:
        run = ctx.run
        body = {
            "sessionId": run.server_session_id or "",
            "toolName": tool_name,
            "toolResult": result_for_model(result, max_chars=self._max_result_chars),
        }
        response: httpx.Response | None = None
        for attempt in range(2):
            run.http_attempts["continue"] += 1
            response = await self._transport.continue_(body)
            if response.status_code < 500:
                return response
            await response.aclose()
            if attempt == 0:
                logger.warning(
                    "run %s: continue returned %d; retrying in %.1fs",
                    run.run_id,
                    response.status_code,
                    self._continue_backoff_s,
                )
                await self._sleep(self._continue_backoff_s)
        status = response.status_code if response is not None else 0
        self._finish(ctx, RunPhase.ERRORED, error_event(f"Request failed: {status}"))
        return None

    async def _read_stream(self, ctx: _RunContext, response: httpx.Response) -> _PendingCall | None:
        """Consume one event stream; returns the requested tool call, or None once the run has finished."""

        run = ctx.run
        try:
            if response.status_code != 200:
                message = await error_message(response)
                self._finish(ctx, RunPhase.ERRORED, error_event(message))
                return None
            run.advance(RunPhase.AWAITING_EVENT)
            async for frame in aiter_frames(response.aiter_bytes()):
                try:
                    event_type = AgentEventType(frame.event)
                except ValueError:
                    logger.warning("run %s: ignoring unknown event type %r", run.run_id, frame.event)
                    continue
                data = frame.data if isinstance(frame.data, dict) else {"raw": frame.data}
                event = AgentEvent(event_type, data)

                if event_type in _TERMINAL_PHASES:
                    self._finish(ctx, _TERMINAL_PHASES[event_type], event)
                    return None
                self._record(ctx, event)
                if event_type == AgentEventType.AGENT_START and isinstance(data.get("sessionId"), str):
                    run.server_session_id = data["sessionId"]
                    if run.agent_session_id:
                        self._sessions.update_session(run.agent_session_id, server_session_id=run.server_session_id)
                elif event_type == AgentEventType.TOOL_CALL:
                    name = data.get("toolName")
                    args = data.get("args")
                    return _PendingCall(
                        tool_name=name if isinstance(name, str) else "",
                        args=dict(args) if isinstance(args, dict) else {},
                    )
        finally:
            await response.aclose()
        self._finish(ctx, RunPhase.ERRORED, error_event("Stream ended without a terminal event"))
        return None

    def _record(self, ctx: _RunContext, event: AgentEvent) -> None:
        run = ctx.run
        run.history.append(event)
        self._state.add_event(event, generation=ctx.generation)
        if run.agent_session_id:
            self._sessions.update_session(run.agent_session_id, history=ctx.durable_history())

    def _finish(self, ctx: _RunContext, phase: RunPhase, event: AgentEvent | None = None) -> None:
        run = ctx.run
        if is_terminal_phase(run.phase):
            return
        if event is not None:
            self._record(ctx, event)
        run.advance(phase)
        run.completions += 1
        self._state.complete_execution(generation=ctx.generation)
        if run.agent_session_id:
            self._sessions.update_session(run.agent_session_id, status=run.status)
        logger.info("run %s finished: %s", run.run_id, run.status.value)


@dataclass(slots=True)
class _RunContext:
    run: AgentRun
    generation: int
    prior_history: list[dict[str, Any]]

    def durable_history(self) -> list[dict[str, Any]]:
        return [*self.prior_history, *(e.to_dict() for e in self.run.history)]


def _is_known_event(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    try:
        AgentEventType(str(raw.get("type")))
    except ValueError:
        return False
    return True
