"""Listing service - filtered, sorted, paginated views over time entries."""
import math

from chronos.errors import ValidationError
from chronos.models.time_entry import TimeEntryFilters, TimeEntryList
from chronos.services.entry_store import EntryStore
from chronos.utils.clock import ensure_aware
from chronos.utils.listing import clamp_pagination


class ListingService:
    """Service for listing time entries with totals."""

    def __init__(self, store: EntryStore):
        """Initialize service with the entry store."""
        self.store = store

    async def list_entries(self, owner: str, filters: TimeEntryFilters) -> TimeEntryList:
        """
        List one page of entries plus totals over the full filtered set.

        Out-of-range page and page_size values are clamped. Storage errors
        propagate to the caller.

        Args:
            owner: Owner ID
            filters: Predicate, sort and page request

        Returns:
            Page of entries with total_count and total_duration

        Raises:
            ValidationError: If end_date is before start_date
        """
        if filters.start_date and filters.end_date:
            if ensure_aware(filters.end_date) < ensure_aware(filters.start_date):
                raise ValidationError("End date must not be before start date")

        page, page_size = clamp_pagination(filters.page, filters.page_size)
        entries, total_count, total_duration = await self.store.query(
            owner,
            filters,
            page,
            page_size,
        )

        return TimeEntryList(
            entries=entries,
            total_count=total_count,
            total_duration=total_duration,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size),
        )
