from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import ValidationError

from ..models.ui_updates import UIUpdate, parse_ui_update
from .surfaces import (
    BRIDGE_POLL_INTERVAL_S,
    BRIDGE_WAIT_TIMEOUT_S,
    PlayContext,
    SleepFn,
    SurfaceRegistry,
    wait_for_bridge,
)

logger = logging.getLogger(__name__)

BeforeNextHook = Callable[[UIUpdate], Awaitable[None] | None]


class UIUpdateExecutor:
    """
    Serialized playback of UI update descriptors.

    One consumer task drains a FIFO shared by every producer, so at most one descriptor is
    in flight at any time regardless of which surface it targets. The consumer starts on the
    first submit and exits when the queue is empty.
    """

    def __init__(
        self,
        surfaces: SurfaceRegistry,
        *,
        sleep: SleepFn = asyncio.sleep,
        bridge_timeout_s: float = BRIDGE_WAIT_TIMEOUT_S,
        bridge_poll_interval_s: float = BRIDGE_POLL_INTERVAL_S,
    ) -> None:
        self._surfaces = surfaces
        self._sleep = sleep
        self._bridge_timeout_s = bridge_timeout_s
        self._bridge_poll_interval_s = bridge_poll_interval_s
        self._pending: deque[tuple[UIUpdate, asyncio.Future[None]]] = deque()
        self._task: asyncio.Task[None] | None = None
        self._in_flight: UIUpdate | None = None
        self._on_before_next: BeforeNextHook | None = None

    @property
    def surfaces(self) -> SurfaceRegistry:
        return self._surfaces

    @property
    def in_flight(self) -> UIUpdate | None:
        return self._in_flight

    @property
    def pending(self) -> int:
        return len(self._pending)

    def set_on_before_next_update(self, hook: BeforeNextHook | None) -> None:
        self._on_before_next = hook

    def submit(self, update: UIUpdate | dict[str, Any]) -> asyncio.Future[None]:
        """Enqueue without waiting; the returned future resolves once the descriptor has played."""

        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()
        if isinstance(update, dict):
            try:
                update = parse_ui_update(update)
            except ValidationError as e:
                logger.warning("dropping malformed UI update %r: %s", update.get("type"), e)
                fut.set_result(None)
                return fut
        self._pending.append((update, fut))
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._drain(), name="ui-update-executor")
        return fut

    async def execute(self, update: UIUpdate | dict[str, Any]) -> None:
        await self.submit(update)

    async def execute_multiple(self, updates: Iterable[UIUpdate | dict[str, Any]]) -> None:
        futures = [self.submit(u) for u in updates]
        if futures:
            await asyncio.gather(*futures)

    async def join(self) -> None:
        """Wait until everything submitted so far has played."""

        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def _drain(self) -> None:
        while self._pending:
            update, fut = self._pending.popleft()
            self._in_flight = update
            try:
                await self._play(update)
            except Exception:  # noqa: BLE001
                logger.exception("UI update %s on %s failed", update.type, update.target_id)
            finally:
                self._in_flight = None
                if not fut.done():
                    fut.set_result(None)
            if self._pending and self._on_before_next is not None:
                maybe = self._on_before_next(self._pending[0][0])
                if inspect.isawaitable(maybe):
                    await maybe
                await self._sleep(0)

    async def _play(self, update: UIUpdate) -> None:
        if update.delay:
            await self._sleep(update.delay / 1000.0)
        target_id = update.target_id
        surface = self._surfaces.get(target_id)
        bridge = None
        if update.needs_bridge:
            bridge = await wait_for_bridge(
                self._surfaces,
                target_id,
                sleep=self._sleep,
                timeout_s=self._bridge_timeout_s,
                poll_interval_s=self._bridge_poll_interval_s,
            )
            if bridge is None:
                surface = self._surfaces.get(target_id)
                if surface is None:
                    logger.warning("UI target not found: %s", target_id)
                    return
                if surface.suppress_direct_fallback:
                    logger.info("no bridge for %s and direct fallback is suppressed; skipping %s", target_id, update.type)
                    return
                logger.debug("no bridge for %s; using direct path for %s", target_id, update.type)
        elif surface is None:
            logger.warning("UI target not found: %s", target_id)
            return
        await update.apply(PlayContext(surface=surface, bridge=bridge, sleep=self._sleep))
