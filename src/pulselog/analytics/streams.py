"""Per-type event bins handed to the analytics functions.

The engine works on a snapshot: everything is fetched up front, binned
by type once, and then treated as read-only for the whole computation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Iterable, Sequence, TypeVar

from pulselog.models import (
    ArrhythmiaEvent,
    DrinkEvent,
    Event,
    FoodEvent,
    InhalerEvent,
    IntervalEvent,
    MedicationEvent,
    ReadingEvent,
    SleepEvent,
    StepsEvent,
    StressEvent,
    SymptomEvent,
    WalkEvent,
    WeightEvent,
)
from pulselog.timeutil import local_date

E = TypeVar("E", bound=Event)


@dataclass(frozen=True)
class Streams:
    """All events of a snapshot, binned by type, each bin oldest first."""

    arrhythmia: tuple[ArrhythmiaEvent, ...] = ()
    readings: tuple[ReadingEvent, ...] = ()
    sleep: tuple[SleepEvent, ...] = ()
    walks: tuple[WalkEvent, ...] = ()
    steps: tuple[StepsEvent, ...] = ()
    weight: tuple[WeightEvent, ...] = ()
    food: tuple[FoodEvent, ...] = ()
    drinks: tuple[DrinkEvent, ...] = ()
    medication: tuple[MedicationEvent, ...] = ()
    inhaler: tuple[InhalerEvent, ...] = ()
    stress: tuple[StressEvent, ...] = ()
    symptoms: tuple[SymptomEvent, ...] = ()

    @property
    def episodes(self) -> tuple[ArrhythmiaEvent, ...]:
        """Closed arrhythmia intervals only."""
        return tuple(e for e in self.arrhythmia if e.is_closed)

    @property
    def intake(self) -> tuple[FoodEvent, ...]:
        """Food and drink items together, oldest first."""
        return tuple(sorted(self.food + self.drinks, key=lambda e: e.timestamp))

    def __len__(self) -> int:
        return sum(len(getattr(self, f)) for f in self.__dataclass_fields__)

    def __repr__(self) -> str:
        counts = ", ".join(
            f"{name}={len(getattr(self, name))}"
            for name in self.__dataclass_fields__
            if getattr(self, name)
        )
        return f"Streams({counts})"


# Bin order matters: DrinkEvent subclasses FoodEvent
_BINS: list[tuple[type[Event], str]] = [
    (ArrhythmiaEvent, "arrhythmia"),
    (ReadingEvent, "readings"),
    (SleepEvent, "sleep"),
    (WalkEvent, "walks"),
    (StepsEvent, "steps"),
    (WeightEvent, "weight"),
    (DrinkEvent, "drinks"),
    (FoodEvent, "food"),
    (MedicationEvent, "medication"),
    (InhalerEvent, "inhaler"),
    (StressEvent, "stress"),
    (SymptomEvent, "symptoms"),
]


def bin_events(events: Iterable[Event]) -> Streams:
    """Walk a mixed event list and bin it by type."""
    bins: dict[str, list[Event]] = {name: [] for _, name in _BINS}
    for event in events:
        for cls, name in _BINS:
            if isinstance(event, cls):
                bins[name].append(event)
                break
    return Streams(**{
        name: tuple(sorted(items, key=lambda e: e.timestamp))
        for name, items in bins.items()
    })


def on_day(events: Iterable[E], day: date, tz: tzinfo | None = None) -> list[E]:
    """Events whose timestamp falls on local *day*."""
    return [e for e in events if local_date(e.timestamp, tz) == day]


def closed(events: Iterable[E]) -> list[E]:
    """Closed interval events only (open ones are still in progress)."""
    return [e for e in events if isinstance(e, IntervalEvent) and e.is_closed]


def by_day(events: Iterable[E], tz: tzinfo | None = None) -> dict[date, list[E]]:
    """Group events by the local date of their timestamp."""
    out: dict[date, list[E]] = {}
    for e in events:
        out.setdefault(local_date(e.timestamp, tz), []).append(e)
    return out


def newest(events: Sequence[E]) -> E | None:
    return max(events, key=lambda e: e.timestamp) if events else None
