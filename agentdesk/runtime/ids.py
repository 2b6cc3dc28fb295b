from __future__ import annotations

import random
import string
import time
import uuid
from collections.abc import Iterable

_ALPHABET = string.ascii_lowercase + string.digits


def _short_suffix(length: int = 7) -> str:
    return "".join(random.choice(_ALPHABET) for _ in range(length))


def new_id(prefix: str) -> str:
    ts = time.time_ns()
    rand = uuid.uuid4().hex
    return f"{prefix}_{ts:016x}_{rand}"


def new_server_session_id() -> str:
    """
    Session ids handed out by the Start endpoint.

    Shape: `agent-<unix ms>-<7 chars>`; clients treat the value as opaque.
    """

    return f"agent-{now_ts_ms()}-{_short_suffix()}"


def new_agent_session_id() -> str:
    return f"agent-session-{now_ts_ms()}-{_short_suffix()}"


def now_ts_ms() -> int:
    return int(time.time() * 1000)


def new_record_id(prefix: str, taken: Iterable[object] = ()) -> str:
    """`<prefix>-<unix ms>`, suffixed `-2`, `-3`, ... while it collides with `taken`."""

    used = set(taken)
    base = f"{prefix}-{now_ts_ms()}"
    candidate, n = base, 1
    while candidate in used:
        n += 1
        candidate = f"{base}-{n}"
    return candidate
