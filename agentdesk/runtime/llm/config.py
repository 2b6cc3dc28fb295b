from __future__ import annotations

import os
from dataclasses import dataclass, field

from .types import ProviderKind

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
API_KEY_ENV_VARS: tuple[str, ...] = ("GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY")


@dataclass(frozen=True, slots=True)
class ModelProfile:
    profile_id: str = "default"
    provider_kind: ProviderKind = ProviderKind.GEMINI
    model_name: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key_env: tuple[str, ...] = API_KEY_ENV_VARS
    timeout_s: float | None = 120.0
    default_params: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ModelProfile":
        timeout_raw = os.environ.get("AGENTDESK_MODEL_TIMEOUT_S")
        return cls(
            model_name=os.environ.get("AGENTDESK_MODEL", DEFAULT_MODEL),
            base_url=os.environ.get("AGENTDESK_MODEL_BASE_URL", DEFAULT_BASE_URL),
            timeout_s=float(timeout_raw) if timeout_raw else 120.0,
        )
