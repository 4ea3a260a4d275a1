"""Local-time helpers shared by the store and the analytics engine.

All instants are timezone-aware datetimes.  A ``tz`` of ``None`` means
"the machine's local zone", which is what a single-user journal on a
phone or laptop expects.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone, tzinfo

END_OF_DAY = time(23, 59, 59, 999000)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant.  Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a parsable timestamp.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"not a timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_local(ts: datetime, tz: tzinfo | None = None) -> datetime:
    return ts.astimezone(tz)


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of *ts* in the given zone."""
    return ts.astimezone(tz).date()


def local_datetime(day: date, at: time, tz: tzinfo | None = None) -> datetime:
    """Aware datetime for a wall-clock time on *day*."""
    if tz is None:
        return datetime.combine(day, at).astimezone()
    return datetime.combine(day, at, tzinfo=tz)


def day_bounds(day: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Local 00:00:00.000 and 23:59:59.999 of *day*."""
    return local_datetime(day, time.min, tz), local_datetime(day, END_OF_DAY, tz)


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes from *earlier* to *later* (negative if reversed)."""
    return round_half_up((later - earlier).total_seconds() / 60.0)


def event_date_key(event, tz: tzinfo | None = None) -> date:
    """Local date an event is filed under.

    Sleep sessions belong to the morning you wake up, so a closed sleep is
    keyed by its end time.  Everything else uses its timestamp.
    """
    if getattr(event, "event_type", None) == "sleep" and event.end_time is not None:
        return local_date(event.end_time, tz)
    return local_date(event.timestamp, tz)


def format_duration(minutes: float | None) -> str:
    """Short duration label: ``45m`` or ``2h 5m``."""
    if minutes is None:
        return ""
    h = int(minutes // 60)
    m = round_half_up(minutes % 60)
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"


def format_duration_long(minutes: float | None) -> str:
    """Long duration label: ``45 min``, ``1 hour``, ``2 hours 5 min``."""
    if minutes is None:
        return ""
    h = int(minutes // 60)
    m = round_half_up(minutes % 60)
    hours = f"{h} hour{'s' if h > 1 else ''}"
    if h > 0 and m > 0:
        return f"{hours} {m} min"
    if h > 0:
        return hours
    return f"{m} min"
