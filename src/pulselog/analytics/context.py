"""Contextual classification of a reading against other event streams.

Given one focal instant (usually a BP/HR reading) and the events of one
other stream, each classifier answers a narrow question: "was this taken
after the morning meds?", "after a walk?", "after eating?".  All
functions are pure and take the candidate events explicitly.

Two partitions of walks exist on purpose:

* :func:`walk_context` is the display label ("Post-Walk (20m)" / "Resting").
* :func:`reading_slot` is the coarse morning / post-walk / evening bucket
  the period aggregator groups readings by.

Known approximation: :func:`walk_context` takes the *first* qualifying
walk in iteration order, not the closest one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterable, Sequence

from pulselog.models import (
    DrinkEvent,
    FoodEvent,
    MedicationEvent,
    MedStatus,
    ReadingEvent,
    WalkEvent,
)
from pulselog.timeutil import format_duration, local_date, minutes_between, to_local

# A walk that ended up to this long before a reading still "counts"
POST_WALK_WINDOW = timedelta(minutes=90)

# Readings before this local hour are "morning"
MORNING_CUTOFF_HOUR = 14


class ContextBucket(str, Enum):
    POST_MEDS = "Post-Meds"
    PRE_MEDS = "Pre-Meds"
    POST_WALK = "Post-Walk"
    RESTING = "Resting"
    POST_MEAL = "Post-Meal"
    FASTING = "Fasting"
    POST_CAFFEINE = "Post-Caffeine"


class ReadingSlot(str, Enum):
    """Coarse time-of-day grouping for readings."""

    MORNING = "morning"
    POST_WALK = "post-walk"
    EVENING = "evening"


@dataclass(frozen=True)
class ContextResult:
    """A classifier's verdict for one focal instant."""

    label: str
    bucket: ContextBucket
    minutes_since: int | None = None


@dataclass(frozen=True)
class CaffeineContext(ContextResult):
    total_mg: float = 0.0  # caffeine consumed that day up to the reading


@dataclass(frozen=True)
class BpCategory:
    label: str
    severity_rank: int  # 0 Normal, 1 Low, 2 Elevated, 3 High, 4 Crisis
    color_key: str


CRISIS = BpCategory("Crisis", 4, "crisis")
HIGH = BpCategory("High", 3, "high")
ELEVATED = BpCategory("Elevated", 2, "elevated")
LOW = BpCategory("Low", 1, "low")
NORMAL = BpCategory("Normal", 0, "normal")


def _label(bucket: ContextBucket, minutes: int | None) -> str:
    if minutes is None:
        return bucket.value
    return f"{bucket.value} ({format_duration(minutes)})"


def _same_day_before(
    at: datetime,
    events: Iterable,
    tz: tzinfo | None,
) -> list:
    day = local_date(at, tz)
    return [e for e in events if local_date(e.timestamp, tz) == day and e.timestamp <= at]


# ---------------------------------------------------------------------------
# Medication
# ---------------------------------------------------------------------------


def medication_context(
    reading_time: datetime,
    medication_events: Iterable[MedicationEvent],
    tz: tzinfo | None = None,
) -> ContextResult | None:
    """Classify a reading relative to the day's taken doses.

    Returns:
        ``Post-Meds`` with minutes since the latest dose at/before the
        reading, ``Pre-Meds`` if that day's doses all come later, or
        ``None`` if no dose was taken that day (no data, not "pre-meds").
    """
    day = local_date(reading_time, tz)
    taken = [
        m for m in medication_events
        if m.status == MedStatus.TAKEN and local_date(m.timestamp, tz) == day
    ]
    if not taken:
        return None

    before = [m for m in taken if m.timestamp <= reading_time]
    if not before:
        return ContextResult(_label(ContextBucket.PRE_MEDS, None), ContextBucket.PRE_MEDS)

    latest = max(before, key=lambda m: m.timestamp)
    minutes = minutes_between(latest.timestamp, reading_time)
    return ContextResult(_label(ContextBucket.POST_MEDS, minutes), ContextBucket.POST_MEDS, minutes)


# ---------------------------------------------------------------------------
# Walks
# ---------------------------------------------------------------------------


def _recent_walk(
    reading_time: datetime,
    walk_events: Iterable[WalkEvent],
    tz: tzinfo | None,
) -> WalkEvent | None:
    """First closed walk that ended on the reading's day within the window."""
    day = local_date(reading_time, tz)
    for w in walk_events:
        if w.end_time is None or local_date(w.end_time, tz) != day:
            continue
        gap = reading_time - w.end_time
        if timedelta(0) <= gap <= POST_WALK_WINDOW:
            return w
    return None


def walk_context(
    reading_time: datetime,
    walk_events: Iterable[WalkEvent],
    tz: tzinfo | None = None,
) -> ContextResult:
    """``Post-Walk (Xm)`` if a walk ended within 90 minutes before, else ``Resting``."""
    walk = _recent_walk(reading_time, walk_events, tz)
    if walk is None:
        return ContextResult(ContextBucket.RESTING.value, ContextBucket.RESTING)
    minutes = minutes_between(walk.end_time, reading_time)
    return ContextResult(_label(ContextBucket.POST_WALK, minutes), ContextBucket.POST_WALK, minutes)


def reading_slot(
    reading: ReadingEvent,
    walk_events: Iterable[WalkEvent],
    tz: tzinfo | None = None,
) -> ReadingSlot:
    """Bucket a reading as morning, post-walk or evening.

    Post-walk wins over the time of day.
    """
    if _recent_walk(reading.timestamp, walk_events, tz) is not None:
        return ReadingSlot.POST_WALK
    if to_local(reading.timestamp, tz).hour < MORNING_CUTOFF_HOUR:
        return ReadingSlot.MORNING
    return ReadingSlot.EVENING


# ---------------------------------------------------------------------------
# Food, drink, caffeine
# ---------------------------------------------------------------------------


def meal_context(
    reading_time: datetime,
    food_events: Iterable[FoodEvent],
    drink_events: Iterable[DrinkEvent] = (),
    tz: tzinfo | None = None,
) -> ContextResult:
    """``Post-Meal (Xm)`` after the most recent food (or caloric drink), else ``Fasting``."""
    candidates = list(food_events) + [d for d in drink_events if d.calories > 0]
    eaten = _same_day_before(reading_time, candidates, tz)
    if not eaten:
        return ContextResult(ContextBucket.FASTING.value, ContextBucket.FASTING)
    latest = max(eaten, key=lambda e: e.timestamp)
    minutes = minutes_between(latest.timestamp, reading_time)
    return ContextResult(_label(ContextBucket.POST_MEAL, minutes), ContextBucket.POST_MEAL, minutes)


def caffeine_context(
    reading_time: datetime,
    food_events: Iterable[FoodEvent],
    drink_events: Iterable[DrinkEvent] = (),
    tz: tzinfo | None = None,
) -> CaffeineContext | None:
    """Time since the last caffeinated item that calendar day, or ``None``."""
    candidates = [e for e in list(food_events) + list(drink_events) if e.caffeine_mg > 0]
    had = _same_day_before(reading_time, candidates, tz)
    if not had:
        return None
    latest = max(had, key=lambda e: e.timestamp)
    minutes = minutes_between(latest.timestamp, reading_time)
    return CaffeineContext(
        label=f"Caffeine ({format_duration(minutes)})",
        bucket=ContextBucket.POST_CAFFEINE,
        minutes_since=minutes,
        total_mg=float(sum(e.caffeine_mg for e in had)),
    )


# ---------------------------------------------------------------------------
# Blood pressure category
# ---------------------------------------------------------------------------


def bp_category(systolic: float | None, diastolic: float | None) -> BpCategory | None:
    """Classify a BP pair; first matching rule wins.

    A missing value counts as 0 only when the other one is present.
    """
    if not systolic and not diastolic:
        return None
    s = systolic or 0
    d = diastolic or 0
    if s > 180 or d > 120:
        return CRISIS
    if s >= 140 or d >= 90:
        return HIGH
    if s >= 130 or d >= 80:
        return ELEVATED
    if s >= 120 and d < 80:
        return ELEVATED
    if s < 90 or d < 60:
        return LOW
    return NORMAL


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadingContext:
    """Everything known about the circumstances of one instant."""

    at: datetime
    medication: ContextResult | None
    walk: ContextResult
    meal: ContextResult
    caffeine: CaffeineContext | None
    category: BpCategory | None = None
    slot: ReadingSlot | None = None

    def labels(self) -> list[str]:
        """Non-empty context labels in display order."""
        parts = [self.medication, self.walk, self.meal, self.caffeine]
        return [p.label for p in parts if p is not None]


def context_at(
    at: datetime,
    medication_events: Sequence[MedicationEvent],
    walk_events: Sequence[WalkEvent],
    food_events: Sequence[FoodEvent],
    drink_events: Sequence[DrinkEvent],
    tz: tzinfo | None = None,
) -> ReadingContext:
    """Run every classifier for an instant (an episode start, say)."""
    return ReadingContext(
        at=at,
        medication=medication_context(at, medication_events, tz),
        walk=walk_context(at, walk_events, tz),
        meal=meal_context(at, food_events, drink_events, tz),
        caffeine=caffeine_context(at, food_events, drink_events, tz),
    )


def reading_context(
    reading: ReadingEvent,
    medication_events: Sequence[MedicationEvent],
    walk_events: Sequence[WalkEvent],
    food_events: Sequence[FoodEvent],
    drink_events: Sequence[DrinkEvent],
    tz: tzinfo | None = None,
) -> ReadingContext:
    """Full context bundle for a BP/HR reading, including category and slot."""
    base = context_at(reading.timestamp, medication_events, walk_events, food_events, drink_events, tz)
    return ReadingContext(
        at=base.at,
        medication=base.medication,
        walk=base.walk,
        meal=base.meal,
        caffeine=base.caffeine,
        category=bp_category(reading.systolic, reading.diastolic),
        slot=reading_slot(reading, walk_events, tz),
    )
