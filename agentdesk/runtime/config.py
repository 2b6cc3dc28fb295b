from __future__ import annotations

import os
from dataclasses import dataclass, field

from .llm.config import ModelProfile

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
SESSION_TTL_S = 300.0
MAX_ITERATIONS = 40
CONTINUE_RETRY_BACKOFF_S = 0.8
MAX_RESULT_CHARS = 12000


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from e


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    session_ttl_s: float = SESSION_TTL_S
    max_iterations: int = MAX_ITERATIONS
    # Requests per minute per client; 0 disables limiting.
    rate_limit_per_minute: int = 0
    model: ModelProfile = field(default_factory=ModelProfile)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(
            host=os.environ.get("AGENTDESK_HOST", DEFAULT_HOST),
            port=_env_int("AGENTDESK_PORT", DEFAULT_PORT),
            session_ttl_s=_env_float("AGENTDESK_SESSION_TTL_S", SESSION_TTL_S),
            max_iterations=_env_int("AGENTDESK_MAX_ITERATIONS", MAX_ITERATIONS),
            rate_limit_per_minute=_env_int("AGENTDESK_RATE_LIMIT_PER_MINUTE", 0),
            model=ModelProfile.from_env(),
        )


@dataclass(frozen=True, slots=True)
class ClientConfig:
    base_url: str = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"
    continue_retry_backoff_s: float = CONTINUE_RETRY_BACKOFF_S
    max_result_chars: int = MAX_RESULT_CHARS
    timeout_s: float | None = 180.0
    sessions_path: str | None = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        timeout_raw = os.environ.get("AGENTDESK_CLIENT_TIMEOUT_S")
        return cls(
            base_url=os.environ.get("AGENTDESK_SERVER_URL", f"http://{DEFAULT_HOST}:{DEFAULT_PORT}"),
            continue_retry_backoff_s=_env_float("AGENTDESK_CONTINUE_BACKOFF_S", CONTINUE_RETRY_BACKOFF_S),
            max_result_chars=_env_int("AGENTDESK_MAX_RESULT_CHARS", MAX_RESULT_CHARS),
            timeout_s=float(timeout_raw) if timeout_raw else 180.0,
            sessions_path=os.environ.get("AGENTDESK_SESSIONS_PATH") or None,
        )
