"""Display formatting for durations."""


def format_duration(seconds: int) -> str:
    """
    Format a duration as hours and minutes.

    Examples:
        >>> format_duration(9000)
        '2h 30m'
        >>> format_duration(7200)
        '2h'
        >>> format_duration(45 * 60)
        '45m'
        >>> format_duration(0)
        '0m'
    """
    if seconds <= 0:
        return "0m"

    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60

    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def format_timer(seconds: int) -> str:
    """
    Format elapsed seconds for a running timer display (HH:MM:SS).

    Examples:
        >>> format_timer(3661)
        '01:01:01'
        >>> format_timer(-5)
        '00:00:00'
    """
    if seconds < 0:
        return "00:00:00"

    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
