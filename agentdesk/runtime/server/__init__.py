from __future__ import annotations

from .app import AgentApp, AgentServer, JsonReply, StreamReply
from .session_store import ServerSession, SessionStore

__all__ = [
    "AgentApp",
    "AgentServer",
    "JsonReply",
    "ServerSession",
    "SessionStore",
    "StreamReply",
]
