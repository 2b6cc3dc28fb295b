from __future__ import annotations

import os
from collections.abc import Iterable

from .errors import CredentialResolutionError


def find_api_key(env_names: Iterable[str]) -> str | None:
    """Return the first non-empty credential among `env_names`, or None."""

    for name in env_names:
        value = os.environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


def resolve_api_key(env_names: Iterable[str]) -> str:
    names = list(env_names)
    value = find_api_key(names)
    if value is None:
        rendered = " or ".join(names) or "<none>"
        raise CredentialResolutionError(
            f"Missing required environment variable {rendered}.",
            credential_ref=f"env:{names[0]}" if names else None,
        )
    return value
