from __future__ import annotations

import json

from agentdesk.runtime.client import AgentSessionsStore
from agentdesk.runtime.models import RunStatus


class Ticker:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        self.now += 1
        return self.now


class TestAgentSessionsStore:
    def test_create_sets_active_and_label(self) -> None:
        store = AgentSessionsStore()
        sid = store.create_session("Organise every file in the downloads folder by type")
        assert store.active_session_id == sid
        record = store.get(sid)
        assert record.label == "Organise every file in the downloads fol..."
        assert record.status is RunStatus.RUNNING

    def test_prune_keeps_most_recently_accessed(self) -> None:
        store = AgentSessionsStore(max_sessions=2, clock=Ticker())
        first = store.create_session("one")
        second = store.create_session("two")
        store.set_active_session(first)
        third = store.create_session("three")
        ids = {s.id for s in store.sessions()}
        assert ids == {first, third}
        assert second not in ids

    def test_remove_active_falls_back_to_last(self) -> None:
        store = AgentSessionsStore()
        a = store.create_session("a")
        b = store.create_session("b")
        store.remove_session(b)
        assert store.active_session_id == a
        store.remove_session(a)
        assert store.active_session_id is None

    def test_label_and_favorite(self) -> None:
        store = AgentSessionsStore()
        sid = store.create_session("a")
        assert store.update_session_label(sid, "  " + "L" * 50)
        assert store.get(sid).label == "L" * 40
        assert store.set_session_favorite(sid, True)
        assert store.get(sid).is_favorite
        assert store.update_session_label("missing", "x") is False

    def test_returned_records_are_copies(self) -> None:
        store = AgentSessionsStore()
        sid = store.create_session("a")
        store.get(sid).history.append({"type": "error", "data": {}})
        assert store.get(sid).history == []

    def test_save_and_load(self, tmp_path) -> None:
        path = tmp_path / "sessions.json"
        store = AgentSessionsStore(path=path)
        sid = store.create_session("persist me")
        store.update_session(sid, status=RunStatus.COMPLETED, server_session_id="agent-1", history=[{"type": "agent-complete", "data": {"message": "ok"}}])
        store.save()

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["activeAgentSessionId"] == sid
        assert raw["agentSessions"][0]["serverSessionId"] == "agent-1"

        loaded = AgentSessionsStore(path=path)
        assert loaded.load() == 1
        record = loaded.active_session()
        assert record.status is RunStatus.COMPLETED
        assert record.history[0]["data"]["message"] == "ok"

    def test_load_skips_unreadable_records(self, tmp_path) -> None:
        path = tmp_path / "sessions.json"
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "agentSessions": [{"id": "", "intent": "x"}, {"id": "ok", "intent": "y", "createdAt": 1, "lastAccessedAt": 1}],
                    "activeAgentSessionId": "gone",
                }
            ),
            encoding="utf-8",
        )
        store = AgentSessionsStore(path=path)
        assert store.load() == 1
        assert store.active_session_id is None
