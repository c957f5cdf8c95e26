"""Time entry endpoints - timer and time entry operations."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from chronos.config import settings
from chronos.dependencies import (
    get_current_owner,
    get_entry_store,
    get_listing_service,
    get_stats_service,
    get_timer_service,
)
from chronos.errors import TimeEntryError
from chronos.models.time_entry import (
    RunningTimerUpdate,
    SortField,
    SortOrder,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryList,
    TimeEntryUpdate,
    TimerStart,
    TimeStats,
)
from chronos.services.entry_store import EntryStore
from chronos.services.listing_service import ListingService
from chronos.services.stats_service import StatsService
from chronos.services.timer_service import TimerService


router = APIRouter(prefix="/time-entries", tags=["time-entries"])


def _http_error(error: TimeEntryError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.post("/start", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def start_timer(
    timer_start: TimerStart,
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Start a new timer.

    - Requires authentication
    - Only one timer can run at a time (409 otherwise)
    """
    try:
        return await timer.start(
            owner,
            description=timer_start.description,
            project_ref=timer_start.project_ref,
            task_ref=timer_start.task_ref,
        )
    except TimeEntryError as e:
        raise _http_error(e)


@router.post("/restart", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def restart_timer(
    timer_start: TimerStart,
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Stop the running timer, if any, and start a new one.

    - Requires authentication
    - The explicit alternative to start when a timer is already running
    """
    try:
        return await timer.restart(
            owner,
            description=timer_start.description,
            project_ref=timer_start.project_ref,
            task_ref=timer_start.task_ref,
        )
    except TimeEntryError as e:
        raise _http_error(e)


@router.post("/stop", response_model=TimeEntry)
async def stop_current_timer(
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Stop the currently running timer.

    - Requires authentication
    - 409 if no timer is running
    """
    try:
        return await timer.stop(owner)
    except TimeEntryError as e:
        raise _http_error(e)


@router.get("/current", response_model=Optional[TimeEntry])
async def get_current_timer(
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Get the currently running timer.

    - Requires authentication
    - Returns null when no timer is running
    """
    return await timer.get_current_timer(owner)


@router.patch("/current", response_model=TimeEntry)
async def update_current_timer(
    timer_update: RunningTimerUpdate,
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Edit the running timer without stopping it.

    - Requires authentication
    - 409 if no timer is running
    """
    try:
        return await timer.update_running(owner, timer_update)
    except TimeEntryError as e:
        raise _http_error(e)


@router.get("/stats", response_model=TimeStats)
async def get_stats(
    owner: str = Depends(get_current_owner),
    stats_service: StatsService = Depends(get_stats_service),
):
    """
    Tracked seconds and entry counts for today, this week and this month.

    - Requires authentication
    - Degrades to zeros if the database query fails
    """
    return await stats_service.stats(owner)


@router.get("", response_model=TimeEntryList)
async def list_entries(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    project_ref: Optional[str] = Query(None),
    task_ref: Optional[str] = Query(None),
    is_running: Optional[bool] = Query(None),
    sort_by: SortField = Query(SortField.START_TIME),
    order: SortOrder = Query(SortOrder.DESC),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    owner: str = Depends(get_current_owner),
    listing: ListingService = Depends(get_listing_service),
):
    """
    List time entries for the authenticated owner.

    - Requires authentication
    - Optional filters: start_date, end_date (inclusive), project_ref, task_ref, is_running
    - Sorted by start_time descending unless sort_by/order say otherwise
    - page and page_size are clamped to [1, 1000] and [1, 100]
    """
    filters = TimeEntryFilters(
        start_date=start_date,
        end_date=end_date,
        project_ref=project_ref,
        task_ref=task_ref,
        is_running=is_running,
        sort_by=sort_by,
        order=order,
        page=page,
        page_size=page_size if page_size is not None else settings.default_page_size,
    )
    try:
        return await listing.list_entries(owner, filters)
    except TimeEntryError as e:
        raise _http_error(e)


@router.post("", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
async def create_entry(
    entry_create: TimeEntryCreate,
    owner: str = Depends(get_current_owner),
    store: EntryStore = Depends(get_entry_store),
):
    """
    Create a time entry.

    - Requires authentication
    - Without end_time the entry is running and the single-timer rule applies
    - Duration is always calculated from start_time and end_time
    """
    try:
        return await store.create(owner, entry_create)
    except TimeEntryError as e:
        raise _http_error(e)


@router.get("/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    owner: str = Depends(get_current_owner),
    store: EntryStore = Depends(get_entry_store),
):
    """
    Get a specific time entry by ID.

    - Requires authentication
    - Entries of other owners are reported as not found
    """
    try:
        return await store.get(owner, entry_id)
    except TimeEntryError as e:
        raise _http_error(e)


@router.patch("/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    owner: str = Depends(get_current_owner),
    store: EntryStore = Depends(get_entry_store),
):
    """
    Update a time entry.

    - Requires authentication
    - Duration is recalculated; end_time must stay after start_time
    """
    try:
        return await store.update(owner, entry_id, entry_update)
    except TimeEntryError as e:
        raise _http_error(e)


@router.patch("/{entry_id}/stop", response_model=TimeEntry)
async def stop_entry(
    entry_id: str,
    owner: str = Depends(get_current_owner),
    timer: TimerService = Depends(get_timer_service),
):
    """
    Stop a specific running entry.

    - Requires authentication
    - 409 if the entry is already stopped
    """
    try:
        return await timer.stop(owner, entry_id)
    except TimeEntryError as e:
        raise _http_error(e)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    owner: str = Depends(get_current_owner),
    store: EntryStore = Depends(get_entry_store),
):
    """
    Delete a time entry.

    - Requires authentication
    - Hard delete (permanent); deleting a running entry frees the timer
    """
    try:
        await store.delete(owner, entry_id)
    except TimeEntryError as e:
        raise _http_error(e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
