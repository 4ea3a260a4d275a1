"""Journal event types and medication reference data.

Every logged thing is an :class:`Event` with a timezone-aware
``timestamp``.  Interval-shaped events (arrhythmia, sleep, walk) also
carry ``start_time`` / ``end_time``; while ``end_time`` is absent the
interval is *open* and it is excluded from every duration aggregate.

Events are plain mutable dataclasses, but the analytics layer treats
whatever it is handed as a read-only snapshot.  Edits go through
:func:`edit_event` / :func:`close_interval`, which return new objects and
enforce the interval and reading invariants.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Iterable

from pulselog.errors import InvalidIntervalError, InvalidReadingError
from pulselog.timeutil import round_half_up


class EventType(str, Enum):
    """Discriminator for the event union."""

    ARRHYTHMIA = "arrhythmia"
    READING = "reading"
    SLEEP = "sleep"
    WALK = "walk"
    STEPS = "steps"
    WEIGHT = "weight"
    FOOD = "food"
    DRINK = "drink"
    MEDICATION = "medication"
    INHALER = "inhaler"
    STRESS = "stress"
    SYMPTOM = "symptom"


class MedStatus(str, Enum):
    TAKEN = "Taken"
    SKIPPED = "Skipped"


class TimeOfDay(str, Enum):
    AM = "AM"
    PM = "PM"


class Schedule(str, Enum):
    MORNING = "Morning"
    EVENING = "Evening"
    BOTH = "Both"


INTERVAL_TYPES = frozenset({EventType.ARRHYTHMIA, EventType.SLEEP, EventType.WALK})


# ---------------------------------------------------------------------------
# Event classes
# ---------------------------------------------------------------------------


@dataclass
class Event:
    """Fields shared by every journal entry."""

    event_type: ClassVar[EventType]

    id: str
    timestamp: datetime
    notes: str = ""
    is_during_arrhythmia: bool = False
    last_edited: datetime | None = None


@dataclass
class IntervalEvent(Event):
    """An event with a start and (once closed) an end."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_min: int | None = None

    def __post_init__(self) -> None:
        if self.start_time is None:
            self.start_time = self.timestamp
        if self.end_time is not None:
            if self.end_time < self.start_time:
                raise InvalidIntervalError(
                    f"{self.event_type.value} {self.id} ends before it starts"
                )
            self.duration_min = duration_minutes(self.start_time, self.end_time)
        else:
            self.duration_min = None

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None


@dataclass
class ArrhythmiaEvent(IntervalEvent):
    """An arrhythmia (AFib) episode; an *episode* once closed."""

    event_type: ClassVar[EventType] = EventType.ARRHYTHMIA

    onset_context: frozenset[str] = frozenset()
    onset_notes: str = ""


@dataclass
class SleepEvent(IntervalEvent):
    event_type: ClassVar[EventType] = EventType.SLEEP


@dataclass
class WalkEvent(IntervalEvent):
    event_type: ClassVar[EventType] = EventType.WALK


@dataclass
class ReadingEvent(Event):
    """A blood-pressure / heart-rate reading.  At least one value is set."""

    event_type: ClassVar[EventType] = EventType.READING

    systolic: int | None = None
    diastolic: int | None = None
    heart_rate: int | None = None

    def __post_init__(self) -> None:
        if self.systolic is None and self.diastolic is None and self.heart_rate is None:
            raise InvalidReadingError(f"reading {self.id} has no values")


@dataclass
class StepsEvent(Event):
    event_type: ClassVar[EventType] = EventType.STEPS

    step_count: int = 0


@dataclass
class WeightEvent(Event):
    event_type: ClassVar[EventType] = EventType.WEIGHT

    weight_kg: float = 0.0


@dataclass
class FoodEvent(Event):
    """A food item with macros (all optional, zero when not entered)."""

    event_type: ClassVar[EventType] = EventType.FOOD

    name: str = ""
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    sodium_mg: float = 0.0
    caffeine_mg: float = 0.0


@dataclass
class DrinkEvent(FoodEvent):
    event_type: ClassVar[EventType] = EventType.DRINK

    volume_ml: float = 0.0
    alcohol_units: float = 0.0


@dataclass
class MedicationEvent(Event):
    """A single logged dose.  Name and dosage are copied at logging time."""

    event_type: ClassVar[EventType] = EventType.MEDICATION

    med_name: str = ""
    dosage: str = ""
    status: MedStatus = MedStatus.TAKEN
    time_of_day: TimeOfDay = TimeOfDay.AM

    @property
    def taken(self) -> bool:
        return self.status == MedStatus.TAKEN


@dataclass
class InhalerEvent(Event):
    """A rescue-inhaler use."""

    event_type: ClassVar[EventType] = EventType.INHALER

    context: str = ""


@dataclass
class StressEvent(Event):
    event_type: ClassVar[EventType] = EventType.STRESS

    level: int = 1  # 1 (calm) .. 5 (severe)


@dataclass
class SymptomEvent(Event):
    """Symptom log, optionally attached to an arrhythmia episode.

    ``afib_start_time`` is the legacy link: it equals the parent episode's
    start time.  ``episode_id`` is the stable link written by newer
    clients; when present it wins.
    """

    event_type: ClassVar[EventType] = EventType.SYMPTOM

    symptoms: frozenset[str] = frozenset()
    context: frozenset[str] = frozenset()
    afib_start_time: datetime | None = None
    episode_id: str | None = None


EVENT_CLASSES: dict[EventType, type[Event]] = {
    EventType.ARRHYTHMIA: ArrhythmiaEvent,
    EventType.READING: ReadingEvent,
    EventType.SLEEP: SleepEvent,
    EventType.WALK: WalkEvent,
    EventType.STEPS: StepsEvent,
    EventType.WEIGHT: WeightEvent,
    EventType.FOOD: FoodEvent,
    EventType.DRINK: DrinkEvent,
    EventType.MEDICATION: MedicationEvent,
    EventType.INHALER: InhalerEvent,
    EventType.STRESS: StressEvent,
    EventType.SYMPTOM: SymptomEvent,
}


# ---------------------------------------------------------------------------
# Medication reference data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MedicationDefinition:
    """A medication the user is prescribed (reference data, not an event)."""

    name: str
    dosage: str = ""
    schedule: Schedule = Schedule.MORNING
    afib_relevant: bool = False
    id: str | None = None

    @property
    def doses_per_day(self) -> int:
        return 2 if self.schedule == Schedule.BOTH else 1


def _norm_name(name: str) -> str:
    return " ".join(name.split()).casefold()


def find_definition(
    name: str,
    definitions: Iterable[MedicationDefinition],
) -> MedicationDefinition | None:
    """Look up the definition a dose was logged against.

    Doses keep a snapshot of the name, so a renamed or deleted definition
    simply yields ``None``.
    """
    key = _norm_name(name)
    for d in definitions:
        if _norm_name(d.name) == key:
            return d
    return None


def is_afib_relevant(name: str, definitions: Iterable[MedicationDefinition]) -> bool:
    """True only if a current definition exists and is flagged AFib-relevant."""
    definition = find_definition(name, definitions)
    return definition.afib_relevant if definition is not None else False


# ---------------------------------------------------------------------------
# Lifecycle helpers
# ---------------------------------------------------------------------------


def duration_minutes(start: datetime, end: datetime) -> int:
    """Interval length in whole minutes (rounded half up)."""
    return round_half_up((end - start).total_seconds() / 60.0)


def close_interval(event: IntervalEvent, end_time: datetime) -> IntervalEvent:
    """Return a closed copy of an open interval event.

    Raises:
        InvalidIntervalError: If the event is already closed or *end_time*
            is before its start.
    """
    if event.is_closed:
        raise InvalidIntervalError(f"{event.event_type.value} {event.id} is already closed")
    return dataclasses.replace(event, end_time=end_time)


def edit_event(event: Event, now: datetime | None = None, **changes) -> Event:
    """Return an edited copy of *event* with ``last_edited`` stamped.

    Interval events are re-validated (and their duration re-derived);
    readings must still carry at least one value.
    """
    if isinstance(event, IntervalEvent):
        if "end_time" in changes and changes["end_time"] is None and event.is_closed:
            raise InvalidIntervalError(f"{event.event_type.value} {event.id} cannot be reopened")
        if "timestamp" in changes and "start_time" not in changes:
            changes["start_time"] = changes["timestamp"]
        elif "start_time" in changes and "timestamp" not in changes:
            changes["timestamp"] = changes["start_time"]
    changes.pop("duration_min", None)
    changes["last_edited"] = now or datetime.now(timezone.utc)
    return dataclasses.replace(event, **changes)
