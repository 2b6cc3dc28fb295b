from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    retry_after_s: int = 0


def client_key(headers: Mapping[str, str] | object) -> str:
    """First `X-Forwarded-For` hop, else `X-Real-IP`, else "anonymous"."""

    get = getattr(headers, "get", None)
    if get is None:
        return "anonymous"
    forwarded = get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip() if isinstance(forwarded, str) else ""
    if first:
        return first
    real_ip = get("x-real-ip") or ""
    if isinstance(real_ip, str) and real_ip.strip():
        return real_ip.strip()
    return "anonymous"


class FixedWindowRateLimiter:
    def __init__(self, *, limit: int, window_s: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._limit = int(limit)
        self._window_s = float(window_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    @property
    def enabled(self) -> bool:
        return self._limit > 0

    def check(self, key: str) -> RateDecision:
        if not self.enabled:
            return RateDecision(allowed=True)
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self._window_s:
                started, count = now, 0
            if count >= self._limit:
                retry_after = max(1, math.ceil(self._window_s - (now - started)))
                return RateDecision(allowed=False, retry_after_s=retry_after)
            self._windows[key] = (started, count + 1)
        return RateDecision(allowed=True)
