"""Tests for ListingService and the listing query helpers."""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo.errors import OperationFailure

from chronos.errors import ValidationError
from chronos.models.time_entry import SortField, SortOrder, TimeEntryCreate, TimeEntryFilters
from chronos.services.listing_service import ListingService
from chronos.utils.listing import build_filter_query, build_sort_stages, clamp_pagination


@pytest.fixture
def listing(store):
    return ListingService(store)


async def _seed(store, clock, durations_minutes):
    """Create completed entries an hour apart, oldest first."""
    base = clock() - timedelta(days=2)
    entries = []
    for index, minutes in enumerate(durations_minutes):
        start = base + timedelta(hours=index)
        entries.append(await store.create(
            "user123",
            TimeEntryCreate(
                description=f"Entry {index}",
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
            ),
        ))
    return entries


class TestListingQueryHelpers:
    """Tests for the query helpers."""

    def test_clamp_pagination(self):
        """Test page and page size are clamped, not rejected."""
        assert clamp_pagination(0, 0) == (1, 1)
        assert clamp_pagination(5000, 500) == (1000, 100)
        assert clamp_pagination(3, 20) == (3, 20)

    def test_filter_query_scoped_to_owner(self):
        """Test every listing is scoped to the owner."""
        assert build_filter_query("user123", TimeEntryFilters()) == {"user_id": "user123"}

    def test_filter_query_running_flags(self):
        """Test is_running true and false map to null checks on end_time."""
        running = build_filter_query("user123", TimeEntryFilters(is_running=True))
        completed = build_filter_query("user123", TimeEntryFilters(is_running=False))

        assert running["end_time"] is None
        assert completed["end_time"] == {"$ne": None}

    def test_duration_sort_substitutes_running_key(self):
        """Test missing durations are replaced before sorting."""
        stages = build_sort_stages(SortField.DURATION, SortOrder.DESC)

        assert "$addFields" in stages[0]
        assert list(stages[1]["$sort"]) == ["_sort_duration", "start_time", "_id"]


@pytest.mark.asyncio
class TestListingService:
    """Tests for listing entries."""

    async def test_default_sort_start_time_desc(self, listing, store, clock):
        """Test most recent entries come first."""
        await _seed(store, clock, [10, 20, 30])

        result = await listing.list_entries("user123", TimeEntryFilters())

        assert [e.description for e in result.entries] == ["Entry 2", "Entry 1", "Entry 0"]

    async def test_totals_cover_full_filtered_set(self, listing, store, clock):
        """Test totals ignore the page window."""
        await _seed(store, clock, [10, 20, 30, 40, 50])

        result = await listing.list_entries("user123", TimeEntryFilters(page=2, page_size=2))

        assert len(result.entries) == 2
        assert result.total_count == 5
        assert result.total_duration == (10 + 20 + 30 + 40 + 50) * 60
        assert result.total_pages == 3

    async def test_pages_concatenate_to_full_set(self, listing, store, clock):
        """Test paging reproduces the full set with no duplicates or gaps."""
        seeded = await _seed(store, clock, [5, 5, 5, 5, 5, 5, 5])

        seen = []
        for page in range(1, 5):
            result = await listing.list_entries(
                "user123",
                TimeEntryFilters(page=page, page_size=2, sort_by=SortField.DURATION),
            )
            seen.extend(entry.id for entry in result.entries)

        assert len(seen) == len(set(seen)) == 7
        assert set(seen) == {entry.id for entry in seeded}

    async def test_total_duration_includes_running_elapsed(self, listing, store, clock):
        """Test a running entry counts now - start_time."""
        await _seed(store, clock, [10])
        await store.create("user123", TimeEntryCreate(start_time=clock() - timedelta(minutes=5)))

        result = await listing.list_entries("user123", TimeEntryFilters())

        assert result.total_count == 2
        assert result.total_duration == 10 * 60 + 5 * 60
        page_sum = sum(entry.elapsed(clock()) for entry in result.entries)
        assert page_sum == result.total_duration

    async def test_duration_sort_running_first_when_desc(self, listing, store, clock):
        """Test running entries sort above every finite duration descending."""
        await _seed(store, clock, [10, 600, 30])
        running = await store.create("user123", TimeEntryCreate(start_time=clock()))

        result = await listing.list_entries(
            "user123",
            TimeEntryFilters(sort_by=SortField.DURATION, order=SortOrder.DESC),
        )

        assert result.entries[0].id == running.id
        assert [e.duration for e in result.entries[1:]] == [36000, 1800, 600]

    async def test_duration_sort_running_last_when_asc(self, listing, store, clock):
        """Test running entries sort below every finite duration ascending."""
        await _seed(store, clock, [10, 600, 30])
        running = await store.create("user123", TimeEntryCreate(start_time=clock()))

        result = await listing.list_entries(
            "user123",
            TimeEntryFilters(sort_by=SortField.DURATION, order=SortOrder.ASC),
        )

        assert result.entries[-1].id == running.id
        assert [e.duration for e in result.entries[:-1]] == [600, 1800, 36000]

    async def test_filter_by_project_and_running(self, listing, store, clock):
        """Test project and running filters narrow the set and the totals."""
        project_ref = str(ObjectId())
        start = clock() - timedelta(hours=3)
        await store.create(
            "user123",
            TimeEntryCreate(project_ref=project_ref, start_time=start, end_time=start + timedelta(hours=1)),
        )
        await store.create(
            "user123",
            TimeEntryCreate(start_time=start, end_time=start + timedelta(hours=2)),
        )
        running = await store.create(
            "user123",
            TimeEntryCreate(project_ref=project_ref, start_time=clock() - timedelta(minutes=1)),
        )

        by_project = await listing.list_entries("user123", TimeEntryFilters(project_ref=project_ref))
        only_running = await listing.list_entries("user123", TimeEntryFilters(is_running=True))
        completed = await listing.list_entries("user123", TimeEntryFilters(is_running=False))

        assert by_project.total_count == 2
        assert by_project.total_duration == 3600 + 60
        assert [e.id for e in only_running.entries] == [running.id]
        assert completed.total_count == 2
        assert completed.total_duration == 3 * 3600

    async def test_date_range_inclusive(self, listing, store, clock):
        """Test start_date and end_date include entries starting exactly on them."""
        entries = await _seed(store, clock, [10, 10, 10])

        result = await listing.list_entries(
            "user123",
            TimeEntryFilters(start_date=entries[0].start_time, end_date=entries[1].start_time),
        )

        assert {e.id for e in result.entries} == {entries[0].id, entries[1].id}

    async def test_date_range_reversed_rejected(self, listing, clock):
        """Test end_date before start_date is rejected."""
        with pytest.raises(ValidationError):
            await listing.list_entries(
                "user123",
                TimeEntryFilters(start_date=clock(), end_date=clock() - timedelta(days=1)),
            )

    async def test_out_of_range_pagination_clamped(self, listing, store, clock):
        """Test page 0 and oversized pages are clamped."""
        await _seed(store, clock, [10])

        result = await listing.list_entries("user123", TimeEntryFilters(page=0, page_size=1000))

        assert result.page == 1
        assert result.page_size == 100
        assert result.total_count == 1

    async def test_other_owner_entries_hidden(self, listing, store, clock):
        """Test listings never include other owners' entries."""
        await _seed(store, clock, [10])

        result = await listing.list_entries("user456", TimeEntryFilters())

        assert result.entries == []
        assert result.total_count == 0
        assert result.total_duration == 0

    async def test_query_failure_propagates(self):
        """Test a broken query is surfaced, not emptied."""
        store = MagicMock()
        store.query = AsyncMock(side_effect=OperationFailure("bad query"))

        with pytest.raises(OperationFailure):
            await ListingService(store).list_entries("user123", TimeEntryFilters())
