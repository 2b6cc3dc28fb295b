from __future__ import annotations

from .loop import AgentExecutor, AgentRun
from .sanitize import result_for_model, truncate_data
from .sessions import AgentSessionsStore
from .state import AgentStateStore
from .transport import AgentTransport, EndpointError, SessionNotFoundError

__all__ = [
    "AgentExecutor",
    "AgentRun",
    "AgentSessionsStore",
    "AgentStateStore",
    "AgentTransport",
    "EndpointError",
    "SessionNotFoundError",
    "result_for_model",
    "truncate_data",
]
