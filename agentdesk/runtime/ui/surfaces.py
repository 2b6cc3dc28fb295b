from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

BRIDGE_WAIT_TIMEOUT_S = 2.0
BRIDGE_POLL_INTERVAL_S = 0.05


@runtime_checkable
class CodeEditorBridge(Protocol):
    """Adapter for a structured editor whose content must be replaced through its API."""

    def set_content(self, content: str, path: str | None = None) -> None: ...

    def set_line_highlight(self, line_numbers: list[int], color: str, duration_ms: int) -> None: ...


@dataclass(slots=True)
class UISurface:
    """
    Attribute-style model of one mounted UI panel.

    This is the generic mutation path: effects write `text`, `items`, `fields`, `classes` and
    `highlighted_lines` directly and append a record to `effects`.
    """

    surface_id: str
    text: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)
    classes: set[str] = field(default_factory=set)
    highlighted_lines: dict[int, str] = field(default_factory=dict)
    effects: list[dict[str, Any]] = field(default_factory=list)
    # Surfaces that show a placeholder while mounting must not be written through the generic path.
    suppress_direct_fallback: bool = False

    def record(self, effect_type: str, **payload: Any) -> None:
        self.effects.append({"type": effect_type, **payload})

    def find_item(self, key: str, value: Any) -> dict[str, Any] | None:
        for item in self.items:
            if item.get(key) == value:
                return item
        return None


class SurfaceRegistry:
    """Live surfaces and bridges keyed by target id; shared by reference with the UI executor."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._surfaces: dict[str, UISurface] = {}
        self._bridges: dict[str, Any] = {}

    def mount(self, surface_id: str, *, suppress_direct_fallback: bool = False) -> UISurface:
        surface = UISurface(surface_id=surface_id, suppress_direct_fallback=suppress_direct_fallback)
        with self._lock:
            self._surfaces[surface_id] = surface
        return surface

    def unmount(self, surface_id: str) -> None:
        with self._lock:
            self._surfaces.pop(surface_id, None)
            self._bridges.pop(surface_id, None)

    def get(self, surface_id: str) -> UISurface | None:
        with self._lock:
            return self._surfaces.get(surface_id)

    def register_bridge(self, surface_id: str, bridge: Any) -> None:
        with self._lock:
            self._bridges[surface_id] = bridge

    def unregister_bridge(self, surface_id: str) -> None:
        with self._lock:
            self._bridges.pop(surface_id, None)

    def get_bridge(self, surface_id: str) -> Any | None:
        with self._lock:
            return self._bridges.get(surface_id)


async def wait_for_bridge(
    registry: SurfaceRegistry,
    surface_id: str,
    *,
    sleep: SleepFn,
    timeout_s: float = BRIDGE_WAIT_TIMEOUT_S,
    poll_interval_s: float = BRIDGE_POLL_INTERVAL_S,
) -> Any | None:
    """Poll for a bridge that may still be mounting; None once `timeout_s` worth of polls have passed."""

    bridge = registry.get_bridge(surface_id)
    if bridge is not None:
        return bridge
    attempts = max(1, int(round(timeout_s / poll_interval_s)))
    for _ in range(attempts):
        await sleep(poll_interval_s)
        bridge = registry.get_bridge(surface_id)
        if bridge is not None:
            return bridge
    logger.debug("bridge for %s not registered after %.2fs", surface_id, timeout_s)
    return None


@dataclass(frozen=True, slots=True)
class PlayContext:
    """What one UI update sees while it plays: its surface, an optional bridge, and the clock."""

    surface: UISurface | None
    bridge: Any | None
    sleep: SleepFn

    async def pause_ms(self, ms: float) -> None:
        if ms > 0:
            await self.sleep(ms / 1000.0)
