"""Clock source and timestamp helpers.

All timestamps handled by the core are timezone-aware UTC. MongoDB stores
naive UTC datetimes with millisecond precision, so values are normalized on
the way in and made aware again on the way out.
"""
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Current wall-clock time as an aware UTC datetime.

    Examples:
        >>> utc_now().tzinfo is timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes and convert aware ones to UTC.

    Examples:
        >>> ensure_aware(datetime(2025, 1, 1, 12, 0)).isoformat()
        '2025-01-01T12:00:00+00:00'
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a datetime to the naive-UTC, millisecond form MongoDB keeps.

    Examples:
        >>> to_storage(datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc))
        datetime.datetime(2025, 1, 1, 12, 0, 0, 123000)
        >>> to_storage(None) is None
        True
    """
    if value is None:
        return None
    value = ensure_aware(value)
    return value.replace(
        tzinfo=None,
        microsecond=(value.microsecond // 1000) * 1000,
    )


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a stored naive-UTC datetime back to an aware one."""
    if value is None:
        return None
    return ensure_aware(value)


def whole_seconds(start: datetime, end: datetime) -> int:
    """
    Whole seconds between two timestamps, truncated toward zero.

    Examples:
        >>> whole_seconds(datetime(2025, 1, 1, 9, 0), datetime(2025, 1, 1, 10, 1, 1))
        3661
    """
    delta = ensure_aware(end) - ensure_aware(start)
    return int(delta.total_seconds())


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """Seconds elapsed since ``start``, never negative."""
    return max(0, whole_seconds(start, now))
