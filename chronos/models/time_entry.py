"""Time entry model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from chronos.utils.clock import elapsed_seconds

MAX_DESCRIPTION_LENGTH = 1000


class SortField(str, Enum):
    """Columns a listing can be sorted by."""

    START_TIME = "start_time"
    DURATION = "duration"


class SortOrder(str, Enum):
    """Listing sort direction."""

    ASC = "asc"
    DESC = "desc"


class TimeEntryBase(BaseModel):
    """Fields a caller may attach to any entry."""

    description: Optional[str] = None
    project_ref: Optional[str] = None
    task_ref: Optional[str] = None


class TimerStart(TimeEntryBase):
    """Request model for starting a timer."""

    pass


class TimeEntryCreate(TimeEntryBase):
    """Time entry creation model. A missing end_time creates a running entry."""

    start_time: datetime
    end_time: Optional[datetime] = None


class TimeEntryUpdate(BaseModel):
    """
    Time entry update model - all fields optional.

    Only fields present in the request are applied, so an explicit null
    clears description/project_ref/task_ref while an absent field is kept.
    """

    description: Optional[str] = None
    project_ref: Optional[str] = None
    task_ref: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class RunningTimerUpdate(TimeEntryBase):
    """In-place edit of the running entry; never changes its time bounds."""

    pass


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @computed_field
    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def elapsed(self, now: datetime) -> int:
        """Stored duration for completed entries, time so far for a running one."""
        if self.duration is not None:
            return self.duration
        return elapsed_seconds(self.start_time, now)


class TimeEntryFilters(BaseModel):
    """Listing predicate, sort and page request."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    project_ref: Optional[str] = None
    task_ref: Optional[str] = None
    is_running: Optional[bool] = None
    sort_by: SortField = SortField.START_TIME
    order: SortOrder = SortOrder.DESC
    page: int = 1
    page_size: int = 20


class TimeEntryList(BaseModel):
    """One page of a listing plus totals over the whole filtered set."""

    entries: list[TimeEntry]
    total_count: int
    total_duration: int
    page: int
    page_size: int
    total_pages: int


class TimeStats(BaseModel):
    """Tracked seconds and entry counts for the current day, week and month."""

    today: int = 0
    this_week: int = 0
    this_month: int = 0
    total_entries_today: int = 0
    total_entries_week: int = 0
    total_entries_month: int = 0
    # Set when the numbers are zero because the query failed, not because
    # nothing was tracked.
    degraded: bool = Field(default=False, exclude=True)
