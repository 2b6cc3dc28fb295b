from __future__ import annotations

from datetime import datetime, timedelta, timezone

from agentdesk.runtime.models import ToolDefinition
from agentdesk.runtime.server.attachments import compose_turn_text, parse_attached_files
from agentdesk.runtime.server.prompts import build_system_instruction, render_prompt_template
from agentdesk.runtime.server.rate_limit import FixedWindowRateLimiter, client_key


class TestAttachments:
    def test_at_most_five_files(self) -> None:
        files = parse_attached_files([{"path": f"f{i}.txt", "content": "x"} for i in range(8)])
        assert [f.path for f in files] == [f"f{i}.txt" for i in range(5)]

    def test_long_content_is_cut(self) -> None:
        (f,) = parse_attached_files([{"path": "big.txt", "content": "z" * 9000}])
        assert f.content.endswith("...[truncated]")
        assert f.content.startswith("z" * 8000)

    def test_non_list_is_ignored(self) -> None:
        assert parse_attached_files({"path": "x"}) == []

    def test_turn_text_without_files_is_the_intent(self) -> None:
        assert compose_turn_text("do it", []) == "do it"


class TestPrompts:
    def test_tools_and_goal_are_listed(self) -> None:
        tools = [ToolDefinition(name="notes_create_note", description="Create a note")]
        now = datetime(2026, 3, 4, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        text = build_system_instruction("write {{TODAY}} note", tools, now=now)
        assert "- notes_create_note: Create a note" in text
        assert "Your goal: write {{TODAY}} note" in text
        assert "Today is 2026-03-04 (UTC+02:00)." in text

    def test_today_format_and_unknown_tokens(self) -> None:
        now = datetime(2026, 1, 2, tzinfo=timezone.utc)
        assert render_prompt_template("{{TODAY:%d/%m}} {{NOPE}}", now=now) == "02/01 {{NOPE}}"


class TestRateLimit:
    def test_disabled_by_default(self) -> None:
        limiter = FixedWindowRateLimiter(limit=0)
        assert all(limiter.check("a").allowed for _ in range(100))

    def test_window_resets(self, fake_clock) -> None:
        limiter = FixedWindowRateLimiter(limit=2, window_s=60, clock=fake_clock)
        assert limiter.check("a").allowed
        assert limiter.check("a").allowed
        denied = limiter.check("a")
        assert not denied.allowed
        assert denied.retry_after_s == 60
        assert limiter.check("b").allowed
        fake_clock.advance(60)
        assert limiter.check("a").allowed

    def test_client_key(self) -> None:
        assert client_key({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}) == "1.2.3.4"
        assert client_key({"x-real-ip": " 5.6.7.8 "}) == "5.6.7.8"
        assert client_key({}) == "anonymous"
