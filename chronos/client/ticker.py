"""Locally ticking elapsed-time display for a running timer."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from chronos.utils.clock import Clock, elapsed_seconds, ensure_aware, utc_now

logger = logging.getLogger(__name__)


class ElapsedTicker:
    """
    Recompute ``now - start_time`` on a fixed cadence.

    Elapsed time is derived from the authoritative start_time on every tick
    and never accumulated, so a suspension of any length (a hidden window,
    a sleeping laptop) cannot make the display drift.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        clock: Clock = utc_now,
        interval: float = 1.0,
    ):
        self.on_tick = on_tick
        self.clock = clock
        self.interval = interval
        self.elapsed = 0
        self._start_time: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        """True while the periodic task is scheduled."""
        return self._task is not None and not self._task.done()

    @property
    def tracking(self) -> bool:
        return self._start_time is not None

    def tick(self) -> int:
        """Recompute the elapsed seconds and publish them."""
        if self._start_time is None:
            return self.elapsed
        self.elapsed = elapsed_seconds(self._start_time, self.clock())
        self.on_tick(self.elapsed)
        return self.elapsed

    def start(self, start_time: datetime) -> None:
        """Track a running entry and begin ticking. Needs a running event loop."""
        self._start_time = ensure_aware(start_time)
        self.tick()
        self._schedule()

    def stop(self) -> None:
        """Stop ticking and forget the entry."""
        self._cancel()
        self._start_time = None
        self.elapsed = 0
        self.on_tick(0)

    def suspend(self) -> None:
        """Pause ticking but keep the entry, e.g. while the client is hidden."""
        self._cancel()

    def resume(self) -> None:
        """Recompute from start_time immediately, then keep ticking."""
        if self._start_time is None:
            return
        self.tick()
        self._schedule()

    async def aclose(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        task = self._task
        self._cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _schedule(self) -> None:
        self._cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except Exception:
                logger.exception("Elapsed time callback failed")
