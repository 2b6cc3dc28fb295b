from __future__ import annotations

from agentdesk.runtime.server.session_store import SessionStore


class TestSessionStore:
    def test_create_assigns_agent_prefixed_id(self, fake_clock) -> None:
        store = SessionStore(clock=fake_clock)
        sid = store.create(object())
        assert sid.startswith("agent-")
        assert store.get(sid) is not None

    def test_client_supplied_id_is_used(self, fake_clock) -> None:
        store = SessionStore(clock=fake_clock)
        assert store.create(object(), session_id="  mine  ") == "mine"

    def test_expired_entry_is_invisible_without_sweep(self, fake_clock) -> None:
        store = SessionStore(ttl_s=300, clock=fake_clock)
        sid = store.create(object())
        fake_clock.advance(301)
        assert store.get(sid) is None
        assert len(store) == 0

    def test_touch_extends_lifetime(self, fake_clock) -> None:
        store = SessionStore(ttl_s=300, clock=fake_clock)
        sid = store.create(object())
        fake_clock.advance(200)
        assert store.touch(sid)
        fake_clock.advance(200)
        assert store.get(sid) is not None

    def test_entry_at_exact_ttl_survives(self, fake_clock) -> None:
        store = SessionStore(ttl_s=300, clock=fake_clock)
        sid = store.create(object())
        fake_clock.advance(300)
        assert store.get(sid) is not None

    def test_sweep_removes_only_expired(self, fake_clock) -> None:
        store = SessionStore(ttl_s=300, clock=fake_clock)
        old = store.create(object())
        fake_clock.advance(250)
        fresh = store.create(object())
        fake_clock.advance(100)
        assert store.sweep() == 1
        assert store.get(old) is None
        assert store.get(fresh) is not None

    def test_touch_unknown_session(self, fake_clock) -> None:
        store = SessionStore(clock=fake_clock)
        assert store.touch("nope") is False
