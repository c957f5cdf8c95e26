"""Client-side list of time entries with optimistic mutations."""
import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

import httpx

from chronos.client.api import TimeEntriesClient
from chronos.client.formatting import format_duration
from chronos.errors import TimeEntryError
from chronos.models.time_entry import (
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryUpdate,
    TimeStats,
)
from chronos.utils.clock import Clock, utc_now, whole_seconds

logger = logging.getLogger(__name__)

PENDING_ID_PREFIX = "pending-"

# Fields that narrow a listing, as opposed to sorting or paging it.
FILTER_FIELDS = ("start_date", "end_date", "project_ref", "task_ref", "is_running")


class EntryListController:
    """
    Local copy of one listing page plus the stats.

    Mutations are applied to the local copy before the server answers.
    Whatever the outcome, the list and stats are then refetched; a failed
    mutation is never undone by hand, the refetch replaces the local copy.
    """

    def __init__(
        self,
        api: TimeEntriesClient,
        filters: Optional[TimeEntryFilters] = None,
        clock: Clock = utc_now,
    ):
        self.api = api
        self.clock = clock
        self.filters = filters or TimeEntryFilters()
        self.entries: list[TimeEntry] = []
        self.total_count = 0
        self.total_duration = 0
        self.page = self.filters.page
        self.page_size = self.filters.page_size
        self.stats = TimeStats()
        self.error: Optional[str] = None

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def total_duration_display(self) -> str:
        return format_duration(self.total_duration)

    @property
    def has_next_page(self) -> bool:
        return self.page * self.page_size < self.total_count

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @property
    def active_filter_count(self) -> int:
        return sum(1 for name in FILTER_FIELDS if getattr(self.filters, name) is not None)

    async def load_entries(self) -> None:
        """Fetch the current page; errors propagate."""
        result = await self.api.list(self.filters)
        self.entries = result.entries
        self.total_count = result.total_count
        self.total_duration = result.total_duration
        self.page = result.page
        self.page_size = result.page_size
        self.error = None

    async def load_stats(self) -> None:
        """Fetch stats, keeping the previous numbers if that fails."""
        try:
            self.stats = await self.api.stats()
        except (TimeEntryError, httpx.HTTPError) as e:
            logger.warning("Failed to load time stats: %s", e)

    async def refresh(self) -> None:
        await asyncio.gather(self.load_entries(), self.load_stats())

    async def set_filters(self, **changes) -> None:
        """Change filters and reload; any change other than the page resets to page 1."""
        if "page" not in changes:
            changes["page"] = 1
        self.filters = self.filters.model_copy(update=changes)
        await self.load_entries()

    async def set_page(self, page: int) -> None:
        await self.set_filters(page=page)

    async def clear_filters(self) -> None:
        self.filters = TimeEntryFilters(page_size=self.filters.page_size)
        await self.load_entries()

    @asynccontextmanager
    async def _resync_on_failure(self, action: str):
        try:
            yield
        except (TimeEntryError, httpx.HTTPError) as e:
            logger.warning("Failed to %s time entry (%s), resynchronizing", action, e)
            try:
                await self.refresh()
            except (TimeEntryError, httpx.HTTPError) as refresh_error:
                logger.warning("Resync after failed %s also failed: %s", action, refresh_error)
            self.error = str(e)
            raise

    def _replace_local(self, entry: TimeEntry) -> None:
        self.entries = [entry if existing.id == entry.id else existing for existing in self.entries]

    async def create(self, entry_create: TimeEntryCreate) -> TimeEntry:
        """Show the new entry at once, then confirm with the server."""
        now = self.clock()
        provisional = TimeEntry(
            _id=f"{PENDING_ID_PREFIX}{uuid4().hex}",
            user_id="",
            description=entry_create.description,
            project_ref=entry_create.project_ref,
            task_ref=entry_create.task_ref,
            start_time=entry_create.start_time,
            end_time=entry_create.end_time,
            duration=(
                whole_seconds(entry_create.start_time, entry_create.end_time)
                if entry_create.end_time is not None
                else None
            ),
            created_at=now,
            updated_at=now,
        )
        self.entries = [provisional, *self.entries]
        self.total_count += 1

        async with self._resync_on_failure("create"):
            created = await self.api.create(entry_create)

        await self.refresh()
        return created

    async def update(self, entry_id: str, entry_update: TimeEntryUpdate) -> TimeEntry:
        """Apply the patch locally, then confirm with the server."""
        changes = entry_update.model_dump(exclude_unset=True)
        for entry in self.entries:
            if entry.id == entry_id:
                patched = entry.model_copy(update=changes)
                if patched.end_time is not None:
                    patched = patched.model_copy(
                        update={"duration": whole_seconds(patched.start_time, patched.end_time)}
                    )
                self._replace_local(patched)
                break

        async with self._resync_on_failure("update"):
            updated = await self.api.update(entry_id, entry_update)

        self._replace_local(updated)
        await self.refresh()
        return updated

    async def delete(self, entry_id: str) -> None:
        """Remove the entry locally, then confirm with the server."""
        remaining = [entry for entry in self.entries if entry.id != entry_id]
        if len(remaining) != len(self.entries):
            self.entries = remaining
            self.total_count = max(0, self.total_count - 1)

        async with self._resync_on_failure("delete"):
            await self.api.delete(entry_id)

        await self.refresh()
