"""Timer service - the running-timer lifecycle for an owner.

The current timer is never tracked separately: the state is whatever the
entry store reports as running, so there is a single source of truth.

    Idle --start--> Running --stop--> Idle
    Running --update_running--> Running
"""
import logging
from enum import Enum
from typing import Optional

from chronos.errors import ConflictError, InvalidStateError
from chronos.models.time_entry import RunningTimerUpdate, TimeEntry, TimeEntryCreate, TimeEntryUpdate
from chronos.services.entry_store import EntryStore

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    """Timer states for an owner."""

    IDLE = "idle"
    RUNNING = "running"


class TimerService:
    """Service for handling start/stop timer operations."""

    def __init__(self, store: EntryStore):
        """Initialize service with the entry store."""
        self.store = store

    async def get_state(self, owner: str) -> TimerState:
        """Derive the timer state from the store."""
        running = await self.store.get_running(owner)
        return TimerState.RUNNING if running else TimerState.IDLE

    async def get_current_timer(self, owner: str) -> Optional[TimeEntry]:
        """
        Get the currently running timer, if any.

        Args:
            owner: Owner ID

        Returns:
            Current running time entry, or None
        """
        return await self.store.get_running(owner)

    async def start(
        self,
        owner: str,
        description: Optional[str] = None,
        project_ref: Optional[str] = None,
        task_ref: Optional[str] = None,
    ) -> TimeEntry:
        """
        Start a new timer at the current time.

        A timer that is already running is never replaced. Starting is not
        safe to retry blindly: after a timeout, check get_current_timer first.

        Args:
            owner: Owner ID
            description: Optional description
            project_ref: Optional project reference
            task_ref: Optional task reference

        Returns:
            Created running time entry

        Raises:
            ConflictError: If a timer is already running
            ValidationError: If a field is invalid
        """
        entry = await self.store.create(
            owner,
            TimeEntryCreate(
                description=description,
                project_ref=project_ref,
                task_ref=task_ref,
                start_time=self.store.clock(),
                end_time=None,
            ),
        )
        logger.info("Started timer %s for owner %s", entry.id, owner)
        return entry

    async def stop(self, owner: str, entry_id: Optional[str] = None) -> TimeEntry:
        """
        Stop a timer.

        Args:
            owner: Owner ID
            entry_id: Entry to stop; defaults to whatever is running

        Returns:
            Stopped time entry with end_time and duration

        Raises:
            InvalidStateError: If no timer is running or the entry is already stopped
            NotFoundError: If entry_id does not exist for this owner
        """
        if entry_id is None:
            running = await self.store.get_running(owner)
            if not running:
                raise InvalidStateError("No timer running")
            entry_id = running.id

        entry = await self.store.stop(owner, entry_id)
        logger.info("Stopped timer %s for owner %s after %ss", entry.id, owner, entry.duration)
        return entry

    async def update_running(self, owner: str, timer_update: RunningTimerUpdate) -> TimeEntry:
        """
        Edit description/project/task of the running timer without stopping it.

        Raises:
            InvalidStateError: If no timer is running
        """
        running = await self.store.get_running(owner)
        if not running:
            raise InvalidStateError("No timer running")

        fields = timer_update.model_dump(include=timer_update.model_fields_set)
        return await self.store.update(owner, running.id, TimeEntryUpdate(**fields))

    async def restart(
        self,
        owner: str,
        description: Optional[str] = None,
        project_ref: Optional[str] = None,
        task_ref: Optional[str] = None,
    ) -> TimeEntry:
        """
        Stop whatever is running, then start a new timer.

        This is the explicit form of "switch timers"; start() alone never
        does it implicitly.
        """
        if await self.get_state(owner) == TimerState.RUNNING:
            try:
                await self.stop(owner)
            except InvalidStateError:
                logger.debug("Timer for owner %s was stopped elsewhere before restart", owner)

        try:
            return await self.start(owner, description, project_ref, task_ref)
        except ConflictError:
            logger.warning("Another session started a timer during restart for owner %s", owner)
            raise
