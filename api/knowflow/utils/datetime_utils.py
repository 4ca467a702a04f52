"""
Datetime helpers.

Timestamps are stored as naive UTC datetimes; everything in the scheduler
works on that representation, and models declare their timestamp columns
as plain ``DateTime`` so naive values are stored as given.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple


def utc_now() -> datetime:
    """Get the current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware or naive datetime to naive UTC (naive input is assumed UTC)."""
    if dt is None:
        return None
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Return [start, end) of the UTC calendar day containing moment."""
    moment = to_naive_utc(moment)
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def minutes_between(later: datetime, earlier: datetime) -> int:
    """Whole minutes from earlier to later, truncated toward zero; negative if later < earlier."""
    delta = to_naive_utc(later) - to_naive_utc(earlier)
    return int(delta.total_seconds() / 60)
