from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..ids import new_server_session_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServerSession:
    session_id: str
    chat: Any
    last_touched: float
    turns: int = 0


class SessionStore:
    """
    In-memory table of live model conversations keyed by session id.

    Expiry is cooperative: callers run `sweep()` at the start of each request, and `get()`
    never returns an entry older than the TTL even if no sweep has run yet.
    """

    def __init__(self, *, ttl_s: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_s = float(ttl_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, ServerSession] = {}

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    def create(self, chat: Any, *, session_id: str | None = None) -> str:
        sid = session_id.strip() if isinstance(session_id, str) and session_id.strip() else new_server_session_id()
        with self._lock:
            self._sessions[sid] = ServerSession(session_id=sid, chat=chat, last_touched=self._clock())
        return sid

    def get(self, session_id: str) -> ServerSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._expired(session, self._clock()):
                del self._sessions[session_id]
                return None
            return session

    def touch(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            now = self._clock()
            if self._expired(session, now):
                del self._sessions[session_id]
                return False
            session.last_touched = now
            return True

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.debug("swept %d expired session(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expired(self, session: ServerSession, now: float) -> bool:
        return now - session.last_touched > self._ttl_s
