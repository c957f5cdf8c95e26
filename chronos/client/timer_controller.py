"""Client-side view of the running timer."""
import logging
from typing import Callable, Optional

import httpx

from chronos.client.api import TimeEntriesClient
from chronos.client.formatting import format_timer
from chronos.client.ticker import ElapsedTicker
from chronos.errors import InvalidStateError, TimeEntryError
from chronos.models.time_entry import RunningTimerUpdate, TimeEntry
from chronos.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class TimerController:
    """
    Keep a client's timer display consistent with the server.

    The server is the only source of truth. The controller never assumes
    the timer is idle: ``load()`` asks the server, and so does every
    failed command and every return to the foreground.
    """

    def __init__(
        self,
        api: TimeEntriesClient,
        clock: Clock = utc_now,
        tick_interval: float = 1.0,
        on_change: Optional[Callable[["TimerController"], None]] = None,
    ):
        self.api = api
        self.on_change = on_change
        self.current: Optional[TimeEntry] = None
        self.elapsed = 0
        self.visible = True
        self.loaded = False
        self.error: Optional[str] = None
        self.ticker = ElapsedTicker(self._on_tick, clock=clock, interval=tick_interval)

    @property
    def is_running(self) -> bool:
        return self.current is not None and self.current.is_running

    @property
    def display(self) -> str:
        """Elapsed time of the running timer as HH:MM:SS."""
        return format_timer(self.elapsed)

    @property
    def can_start(self) -> bool:
        return self.loaded and not self.is_running

    @property
    def can_stop(self) -> bool:
        return self.loaded and self.is_running

    def _on_tick(self, elapsed: int) -> None:
        self.elapsed = elapsed
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _apply(self, entry: Optional[TimeEntry]) -> None:
        if entry is not None and entry.is_running:
            self.current = entry
            self.ticker.start(entry.start_time)
            if not self.visible:
                self.ticker.suspend()
        else:
            self.current = None
            self.ticker.stop()
        self._notify()

    async def load(self) -> Optional[TimeEntry]:
        """Fetch the running timer from the server and display it."""
        entry = await self.api.get_running()
        self.loaded = True
        self._apply(entry)
        return self.current

    async def _resync_after(self, error: Exception) -> None:
        self.error = str(error)
        logger.warning("Timer command failed (%s), resynchronizing", error)
        try:
            await self.load()
        except (TimeEntryError, httpx.HTTPError) as e:
            logger.warning("Timer resync failed: %s", e)

    async def _require_running(self) -> TimeEntry:
        """The running entry, asking the server when none is displayed."""
        if self.current is None:
            await self.load()
        if self.current is None:
            raise InvalidStateError("No timer is currently running")
        return self.current

    async def start(
        self,
        description: Optional[str] = None,
        project_ref: Optional[str] = None,
        task_ref: Optional[str] = None,
    ) -> TimeEntry:
        """
        Start a timer.

        A ConflictError is always re-raised after showing the timer that is
        actually running, so the caller can choose to stop it first. A
        transport failure also triggers a resync, because the start may
        have succeeded on the server.
        """
        self.error = None
        try:
            entry = await self.api.start(description, project_ref, task_ref)
        except (TimeEntryError, httpx.HTTPError) as e:
            await self._resync_after(e)
            raise

        self._apply(entry)
        return entry

    async def stop(self) -> TimeEntry:
        """Stop the running timer."""
        current = await self._require_running()

        self.error = None
        try:
            stopped = await self.api.stop(current.id)
        except (TimeEntryError, httpx.HTTPError) as e:
            await self._resync_after(e)
            raise

        self._apply(None)
        return stopped

    async def update_running(self, timer_update: RunningTimerUpdate) -> TimeEntry:
        """Edit the running timer in place, optimistically."""
        current = await self._require_running()

        self.error = None
        self.current = current.model_copy(update=timer_update.model_dump(exclude_unset=True))
        self._notify()
        try:
            updated = await self.api.update_running(timer_update)
        except (TimeEntryError, httpx.HTTPError) as e:
            await self._resync_after(e)
            raise

        self._apply(updated)
        return updated

    async def set_visible(self, visible: bool) -> None:
        """
        React to the client being hidden or shown.

        Hidden: stop ticking. Shown: recompute elapsed time from start_time
        at once, then refetch, since another session may have stopped or
        started a timer in the meantime.
        """
        self.visible = visible
        if not visible:
            self.ticker.suspend()
            return

        self.ticker.resume()
        await self.load()

    async def close(self) -> None:
        await self.ticker.aclose()
