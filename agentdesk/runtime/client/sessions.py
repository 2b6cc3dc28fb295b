from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..ids import new_agent_session_id, now_ts_ms
from ..models.agent_session import LABEL_MAX_CHARS, AgentSession, default_label
from ..models.status import RunStatus

logger = logging.getLogger(__name__)

MAX_SESSIONS = 50

_UNSET: Any = object()


class AgentSessionsStore:
    """
    Durable, user-visible run records.

    Records outlive the server-side conversation; once more than `max_sessions` exist the
    least recently accessed are dropped. With a `path`, `load()`/`save()` persist to JSON.
    """

    def __init__(
        self,
        *,
        path: Path | None = None,
        max_sessions: int = MAX_SESSIONS,
        clock: Callable[[], int] = now_ts_ms,
    ) -> None:
        self._path = path
        self._max_sessions = int(max_sessions)
        self._clock = clock
        self._lock = threading.RLock()
        self._sessions: list[AgentSession] = []
        self._active_id: str | None = None

    @property
    def active_session_id(self) -> str | None:
        return self._active_id

    def sessions(self) -> list[AgentSession]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self._sessions]

    def get(self, session_id: str) -> AgentSession | None:
        with self._lock:
            found = self._find(session_id)
            return found.model_copy(deep=True) if found is not None else None

    def active_session(self) -> AgentSession | None:
        return self.get(self._active_id) if self._active_id else None

    def create_session(self, intent: str) -> str:
        now = self._clock()
        session = AgentSession(
            id=new_agent_session_id(),
            intent=intent,
            label=default_label(intent),
            created_at=now,
            last_accessed_at=now,
        )
        with self._lock:
            self._sessions.append(session)
            self._prune()
            self._active_id = session.id
        return session.id

    def set_active_session(self, session_id: str | None) -> bool:
        with self._lock:
            if session_id is None:
                self._active_id = None
                return True
            found = self._find(session_id)
            if found is None:
                return False
            found.last_accessed_at = self._clock()
            self._active_id = session_id
            return True

    def update_session(
        self,
        session_id: str,
        *,
        history: list[dict[str, Any]] | None = None,
        status: RunStatus | None = None,
        server_session_id: str | None = _UNSET,
    ) -> bool:
        with self._lock:
            found = self._find(session_id)
            if found is None:
                return False
            if history is not None:
                found.history = list(history)
            if status is not None:
                found.status = status
            if server_session_id is not _UNSET:
                found.server_session_id = server_session_id
            found.last_accessed_at = self._clock()
            return True

    def remove_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions = [s for s in self._sessions if s.id != session_id]
            if self._active_id == session_id:
                self._active_id = self._sessions[-1].id if self._sessions else None

    def update_session_label(self, session_id: str, label: str) -> bool:
        with self._lock:
            found = self._find(session_id)
            if found is None:
                return False
            found.label = str(label or "").strip()[:LABEL_MAX_CHARS]
            return True

    def set_session_favorite(self, session_id: str, is_favorite: bool) -> bool:
        with self._lock:
            found = self._find(session_id)
            if found is None:
                return False
            found.is_favorite = bool(is_favorite)
            return True

    def load(self) -> int:
        if self._path is None or not self._path.exists():
            return 0
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{self._path}: expected a JSON object.")
        loaded: list[AgentSession] = []
        for item in raw.get("agentSessions") or []:
            try:
                loaded.append(AgentSession.model_validate(item))
            except ValidationError as e:
                logger.warning("skipping unreadable agent session record: %s", e)
        active = raw.get("activeAgentSessionId")
        with self._lock:
            self._sessions = loaded
            self._prune()
            ids = {s.id for s in self._sessions}
            self._active_id = active if isinstance(active, str) and active in ids else None
        return len(loaded)

    def save(self) -> None:
        if self._path is None:
            return
        with self._lock:
            payload = {
                "version": 1,
                "agentSessions": [s.to_wire() for s in self._sessions],
                "activeAgentSessionId": self._active_id,
            }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    def _find(self, session_id: str) -> AgentSession | None:
        for s in self._sessions:
            if s.id == session_id:
                return s
        return None

    def _prune(self) -> None:
        if len(self._sessions) <= self._max_sessions:
            return
        ranked = sorted(self._sessions, key=lambda s: s.last_accessed_at)
        keep = {s.id for s in ranked[-self._max_sessions :]}
        self._sessions = [s for s in self._sessions if s.id in keep]
