from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Cancellable polling loop with at most one cycle in flight.

    A tick that finds the previous cycle still running is skipped, not
    queued.
    """

    def __init__(self, name: str, interval_s: float, cycle: Callable[[], Awaitable[None]]) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.name = name
        self.interval_s = interval_s
        self.skipped = 0
        self._cycle = cycle
        self._loop_task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is not None:
            loop_task.cancel()
            try:
                await loop_task
            except asyncio.CancelledError:
                pass
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            inflight.cancel()
            await asyncio.wait({inflight})

    async def _run(self) -> None:
        try:
            while True:
                self.trigger()
                await asyncio.sleep(self.interval_s)
        except asyncio.CancelledError:
            return

    def trigger(self, *, force: bool = False) -> Optional[asyncio.Task]:
        """Start a cycle now; returns ``None`` when one is already in flight.

        With ``force`` the in-flight cycle is cancelled and replaced.
        """

        if self.in_flight:
            if not force:
                self.skipped += 1
                logger.debug("%s: cycle still in flight, skipping tick", self.name)
                return None
            self._inflight.cancel()
        task = asyncio.create_task(self._cycle())
        task.add_done_callback(self._on_cycle_done)
        self._inflight = task
        return task

    async def run_now(self, *, force: bool = False) -> bool:
        """Trigger a cycle and wait for it; ``False`` if it was coalesced or cancelled."""

        task = self.trigger(force=force)
        if task is None:
            return False
        await asyncio.wait({task})
        return not task.cancelled()

    async def wait_idle(self) -> None:
        while self.in_flight:
            await asyncio.wait({self._inflight})

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s: polling cycle failed", self.name, exc_info=exc)
