"""Stats service - tracked time for the current day, week and month."""
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from bson.errors import BSONError
from pymongo.errors import PyMongoError

from chronos.models.time_entry import TimeStats
from chronos.services.entry_store import EntryStore

logger = logging.getLogger(__name__)


def _midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def window_bounds(now: datetime, tz: tzinfo) -> dict[str, tuple[datetime, datetime]]:
    """
    Half-open [start, end) windows containing ``now`` in timezone ``tz``.

    Weeks start on Monday.

    Examples:
        >>> from datetime import timezone
        >>> bounds = window_bounds(datetime(2025, 11, 12, 9, 0, tzinfo=timezone.utc), timezone.utc)
        >>> bounds["week"][0].isoformat()
        '2025-11-10T00:00:00+00:00'
        >>> bounds["month"][1].isoformat()
        '2025-12-01T00:00:00+00:00'
    """
    today = now.astimezone(tz).date()
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)

    return {
        "day": (_midnight(today, tz), _midnight(today + timedelta(days=1), tz)),
        "week": (_midnight(week_start, tz), _midnight(week_start + timedelta(days=7), tz)),
        "month": (_midnight(month_start, tz), _midnight(next_month, tz)),
    }


class StatsService:
    """Service for the dashboard statistics."""

    def __init__(self, store: EntryStore, timezone: Optional[tzinfo] = None):
        """Initialize service with the entry store and reference timezone."""
        self.store = store
        self.timezone = timezone or ZoneInfo("UTC")

    async def stats(self, owner: str, now: Optional[datetime] = None) -> TimeStats:
        """
        Sum tracked seconds and count entries per window.

        An entry belongs to a window when its start_time does; it is not
        split across boundaries. A running entry contributes its elapsed
        time as of ``now``.

        A storage failure yields zeroed stats marked ``degraded`` instead of
        an error, so a dashboard stays available.

        Args:
            owner: Owner ID
            now: Reference time (defaults to the store clock)

        Returns:
            Window totals and counts
        """
        now = now or self.store.clock()
        windows = window_bounds(now, self.timezone)
        lower = min(start for start, _ in windows.values())
        upper = max(end for _, end in windows.values())

        try:
            entries = await self.store.find_started_between(owner, lower, upper)
        except (PyMongoError, BSONError, ValueError):
            logger.exception("Stats query failed for owner %s, returning zeroed stats", owner)
            return TimeStats(degraded=True)

        seconds = {name: 0 for name in windows}
        counts = {name: 0 for name in windows}
        for entry in entries:
            contribution = entry.elapsed(now)
            for name, (start, end) in windows.items():
                if start <= entry.start_time < end:
                    seconds[name] += contribution
                    counts[name] += 1

        return TimeStats(
            today=seconds["day"],
            this_week=seconds["week"],
            this_month=seconds["month"],
            total_entries_today=counts["day"],
            total_entries_week=counts["week"],
            total_entries_month=counts["month"],
        )
