from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest

from agentdesk.runtime.config import ServerConfig
from agentdesk.runtime.llm.chat import GeminiModelService
from agentdesk.runtime.llm.config import ModelProfile
from agentdesk.runtime.llm.gemini_stub_server import GeminiStubServer
from agentdesk.runtime.server import AgentApp, AgentServer

STUB_KEY = "stub-key"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays and only yields to the loop."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gemini_stub() -> Iterator[GeminiStubServer]:
    stub = GeminiStubServer(valid_api_key=STUB_KEY)
    stub.start()
    try:
        yield stub
    finally:
        stub.stop()


def build_app(
    stub: GeminiStubServer,
    *,
    api_key: str = STUB_KEY,
    max_iterations: int = 40,
    rate_limit_per_minute: int = 0,
    credential: str | None = STUB_KEY,
) -> tuple[AgentApp, GeminiModelService]:
    profile = ModelProfile(base_url=stub.base_url, timeout_s=10.0)
    config = ServerConfig(
        port=0,
        max_iterations=max_iterations,
        rate_limit_per_minute=rate_limit_per_minute,
        model=profile,
    )
    model = GeminiModelService(profile, api_key=api_key)
    app = AgentApp(config, model=model, credential_lookup=lambda: credential)
    return app, model


@pytest.fixture
def agent_server(gemini_stub: GeminiStubServer) -> Iterator[AgentServer]:
    app, model = build_app(gemini_stub)
    server = AgentServer(app)
    server.start()
    try:
        yield server
    finally:
        server.stop()
        model.close()
