from __future__ import annotations

from enum import StrEnum


class RunStatus(StrEnum):
    """Durable outcome of a run, as recorded on agent session records."""

    RUNNING = "running"
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    ERROR = "error"


class RunPhase(StrEnum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    AWAITING_EVENT = "AWAITING_EVENT"
    TOOL_CALL_RECEIVED = "TOOL_CALL_RECEIVED"
    EXECUTING = "EXECUTING"
    CONTINUING = "CONTINUING"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    ERRORED = "ERRORED"


_TERMINAL = frozenset({RunPhase.COMPLETED, RunPhase.TIMED_OUT, RunPhase.ERRORED})

_NEXT: dict[RunPhase, frozenset[RunPhase]] = {
    RunPhase.IDLE: frozenset({RunPhase.STARTING}),
    RunPhase.STARTING: _TERMINAL | {RunPhase.AWAITING_EVENT},
    RunPhase.AWAITING_EVENT: _TERMINAL | {RunPhase.TOOL_CALL_RECEIVED},
    # An unresolvable tool name ends the run without executing.
    RunPhase.TOOL_CALL_RECEIVED: frozenset({RunPhase.EXECUTING, RunPhase.ERRORED}),
    RunPhase.EXECUTING: frozenset({RunPhase.CONTINUING, RunPhase.ERRORED}),
    RunPhase.CONTINUING: _TERMINAL | {RunPhase.AWAITING_EVENT},
}


def is_terminal_phase(phase: RunPhase) -> bool:
    return phase in _TERMINAL


def status_for_phase(phase: RunPhase) -> RunStatus:
    if phase is RunPhase.COMPLETED:
        return RunStatus.COMPLETED
    if phase is RunPhase.TIMED_OUT:
        return RunStatus.TIMEOUT
    if phase is RunPhase.ERRORED:
        return RunStatus.ERROR
    return RunStatus.RUNNING


def allowed_next_phases(phase: RunPhase) -> frozenset[RunPhase]:
    return _NEXT.get(phase, frozenset())


def validate_phase_transition(*, before: RunPhase, after: RunPhase) -> None:
    allowed = allowed_next_phases(before)
    if after in allowed:
        return
    options = ", ".join(sorted(p.value for p in allowed)) or "none"
    raise ValueError(f"Illegal RunPhase transition: {before.value} -> {after.value} (allowed: {options})")
