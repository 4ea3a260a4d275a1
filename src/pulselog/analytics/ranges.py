"""Calendar week / month windows and period partitioning.

A week here is "the 7 local days ending N weeks ago", not an ISO week:
offset 0 is today and the six days before it.  Months are calendar
months.  Offsets are clamped at 0, so there is no navigating into the
future.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Sequence, TypeVar

from pulselog.timeutil import END_OF_DAY, local_date, local_datetime

E = TypeVar("E")


@dataclass(frozen=True)
class DateRange:
    """An inclusive span of local days, as instants."""

    start: datetime  # local 00:00:00.000 of the first day
    end: datetime  # local 23:59:59.999 of the last day

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        return self.end.date()

    @property
    def day_count(self) -> int:
        return (self.last_day - self.first_day).days + 1

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end

    def days(self) -> list[date]:
        return [self.first_day + timedelta(days=i) for i in range(self.day_count)]

    def overlaps(self, other: DateRange) -> bool:
        return self.start <= other.end and other.start <= self.end

    def label(self) -> str:
        a, b = self.first_day, self.last_day
        if a.year != b.year:
            return f"{a:%d %b %Y} – {b:%d %b %Y}"
        return f"{a:%d %b} – {b:%d %b %Y}"

    def __repr__(self) -> str:
        return f"DateRange({self.first_day.isoformat()}..{self.last_day.isoformat()})"


def clamp_offset(offset: int) -> int:
    """Offsets count back from now; negative ones are pinned to 0."""
    return max(0, int(offset))


def days_range(first: date, last: date, tz: tzinfo | None = None) -> DateRange:
    """Range covering the local days *first* .. *last* inclusive."""
    return DateRange(
        start=local_datetime(first, time.min, tz),
        end=local_datetime(last, END_OF_DAY, tz),
    )


def week_range(offset: int, now: datetime, tz: tzinfo | None = None) -> DateRange:
    """The 7-day window ending today minus ``offset * 7`` days."""
    offset = clamp_offset(offset)
    end_day = local_date(now, tz) - timedelta(days=offset * 7)
    return days_range(end_day - timedelta(days=6), end_day, tz)


def month_range(offset: int, now: datetime, tz: tzinfo | None = None) -> DateRange:
    """Calendar month *offset* months before the current one."""
    offset = clamp_offset(offset)
    today = local_date(now, tz)
    month_index = today.year * 12 + (today.month - 1) - offset
    year, month = divmod(month_index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return days_range(date(year, month, 1), date(year, month, last), tz)


def previous_week(offset: int, now: datetime, tz: tzinfo | None = None) -> DateRange:
    return week_range(clamp_offset(offset) + 1, now, tz)


def previous_month(offset: int, now: datetime, tz: tzinfo | None = None) -> DateRange:
    return month_range(clamp_offset(offset) + 1, now, tz)


def trailing_days(n: int, now: datetime, tz: tzinfo | None = None) -> DateRange:
    """The last *n* local days including today."""
    today = local_date(now, tz)
    return days_range(today - timedelta(days=n - 1), today, tz)


def filter_range(events: Iterable[E], date_range: DateRange) -> list[E]:
    """Events whose ``timestamp`` falls inside the range (inclusive)."""
    return [e for e in events if date_range.contains(e.timestamp)]


def partition(
    events: Sequence[E],
    current: DateRange,
    previous: DateRange,
) -> tuple[list[E], list[E]]:
    """Split events into (this period, previous period)."""
    return filter_range(events, current), filter_range(events, previous)
