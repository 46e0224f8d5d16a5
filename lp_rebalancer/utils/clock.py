"""
UTC time helpers shared by the stores and the scheduler.
"""

from datetime import datetime, timezone
from typing import Callable, Union

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, int, float, datetime]) -> datetime:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings, aware or naive datetimes (naive is taken as UTC)
    and epoch milliseconds.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        parsed = datetime.fromisoformat(value)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
