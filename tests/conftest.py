"""Shared fixtures and helpers for the pulselog test suite."""

from __future__ import annotations

import itertools
import json
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest

from pulselog.analytics.streams import Streams, bin_events
from pulselog.models import (
    ArrhythmiaEvent,
    DrinkEvent,
    FoodEvent,
    InhalerEvent,
    MedicationDefinition,
    MedicationEvent,
    MedStatus,
    ReadingEvent,
    Schedule,
    SleepEvent,
    StepsEvent,
    StressEvent,
    SymptomEvent,
    WalkEvent,
    WeightEvent,
)

# Fixed offset so day boundaries never depend on the machine's zone
TZ = timezone(timedelta(hours=10))
TODAY = date(2026, 3, 18)  # a Wednesday
NOW = datetime.combine(TODAY, time(20, 0), tzinfo=TZ)

SOTALOL = MedicationDefinition("Sotalol Hydrochloride 80mg", "40mg", Schedule.BOTH, afib_relevant=True, id="m1")
MAGNESIUM = MedicationDefinition("Magnesium Glycinate", "400mg", Schedule.MORNING, id="m2")
VITAMIN_D = MedicationDefinition("Vitamin D", "1000IU", Schedule.MORNING, id="m3")
DEFINITIONS = (SOTALOL, MAGNESIUM, VITAMIN_D)

_ids = itertools.count(1)


def _id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def day(days_ago: int = 0) -> date:
    return TODAY - timedelta(days=days_ago)


def at(days_ago: int, hour: int, minute: int = 0) -> datetime:
    """Local wall-clock instant *days_ago* days before TODAY."""
    return datetime.combine(day(days_ago), time(hour, minute), tzinfo=TZ)


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


def make_episode(start: datetime, minutes: int | None = 30, onset=(), notes: str = "",
                 id: str | None = None) -> ArrhythmiaEvent:
    """Closed arrhythmia episode, or an open one with ``minutes=None``."""
    end = start + timedelta(minutes=minutes) if minutes is not None else None
    return ArrhythmiaEvent(id=id or _id("afib"), timestamp=start, start_time=start, end_time=end,
                           onset_context=frozenset(onset), onset_notes=notes)


def make_sleep(end: datetime, minutes: int = 420) -> SleepEvent:
    """Closed sleep session ending at *end*."""
    start = end - timedelta(minutes=minutes)
    return SleepEvent(id=_id("sleep"), timestamp=start, start_time=start, end_time=end)


def make_walk(end: datetime, minutes: int = 30, closed: bool = True) -> WalkEvent:
    start = end - timedelta(minutes=minutes)
    return WalkEvent(id=_id("walk"), timestamp=start, start_time=start,
                     end_time=end if closed else None)


def make_reading(ts: datetime, systolic: int | None = None, diastolic: int | None = None,
                 heart_rate: int | None = None) -> ReadingEvent:
    return ReadingEvent(id=_id("bp"), timestamp=ts, systolic=systolic,
                        diastolic=diastolic, heart_rate=heart_rate)


def make_dose(ts: datetime, med: MedicationDefinition | str = SOTALOL,
              status: MedStatus = MedStatus.TAKEN) -> MedicationEvent:
    name = med if isinstance(med, str) else med.name
    return MedicationEvent(id=_id("med"), timestamp=ts, med_name=name, status=status)


def make_skip(ts: datetime, med: MedicationDefinition | str = SOTALOL) -> MedicationEvent:
    return make_dose(ts, med, MedStatus.SKIPPED)


def make_food(ts: datetime, calories: float = 0.0, caffeine_mg: float = 0.0,
              protein_g: float = 0.0, sodium_mg: float = 0.0, name: str = "food") -> FoodEvent:
    return FoodEvent(id=_id("food"), timestamp=ts, name=name, calories=calories,
                     caffeine_mg=caffeine_mg, protein_g=protein_g, sodium_mg=sodium_mg)


def make_drink(ts: datetime, volume_ml: float = 250.0, caffeine_mg: float = 0.0,
               calories: float = 0.0, alcohol_units: float = 0.0, name: str = "drink") -> DrinkEvent:
    return DrinkEvent(id=_id("drink"), timestamp=ts, name=name, volume_ml=volume_ml,
                      caffeine_mg=caffeine_mg, calories=calories, alcohol_units=alcohol_units)


def make_stress(ts: datetime, level: int) -> StressEvent:
    return StressEvent(id=_id("stress"), timestamp=ts, level=level)


def make_inhaler(ts: datetime) -> InhalerEvent:
    return InhalerEvent(id=_id("inh"), timestamp=ts)


def make_weight(ts: datetime, kg: float) -> WeightEvent:
    return WeightEvent(id=_id("wt"), timestamp=ts, weight_kg=kg)


def make_steps(ts: datetime, count: int) -> StepsEvent:
    return StepsEvent(id=_id("steps"), timestamp=ts, step_count=count)


def make_symptom(ts: datetime, symptoms=(), afib_start_time: datetime | None = None,
                 episode_id: str | None = None) -> SymptomEvent:
    return SymptomEvent(id=_id("sym"), timestamp=ts, symptoms=frozenset(symptoms),
                        afib_start_time=afib_start_time, episode_id=episode_id)


def streams_of(*events) -> Streams:
    return bin_events(events)


# ---------------------------------------------------------------------------
# Journal export helpers
# ---------------------------------------------------------------------------


def legacy_export() -> dict:
    """A small export in the app's camelCase format (all times UTC)."""
    return {
        "events": [
            {"id": "e1", "eventType": "afib", "timestamp": "2026-03-17T04:00:00Z",
             "startTime": "2026-03-17T04:00:00Z", "endTime": "2026-03-17T04:45:00Z",
             "onsetContext": ["Resting"], "onsetNotes": "after lunch"},
            {"id": "e2", "eventType": "bp_hr", "timestamp": "2026-03-17T04:20:00Z",
             "systolic": 145, "diastolic": 92, "heartRate": 118},
            {"id": "e3", "eventType": "medication", "timestamp": "2026-03-17T00:00:00Z",
             "medName": "Sotalol Hydrochloride 80mg", "dosage": "40mg",
             "status": "Skipped", "timeOfDay": "AM"},
            {"id": "e4", "eventType": "sleep", "timestamp": "2026-03-16T13:00:00Z",
             "startTime": "2026-03-16T13:00:00Z", "endTime": "2026-03-16T18:00:00Z"},
            {"id": "e5", "eventType": "drink", "timestamp": "2026-03-17T03:30:00Z",
             "name": "Coffee", "volume_ml": "250", "caffeine_mg": 95},
            {"id": "e6", "eventType": "afib_symptom", "timestamp": "2026-03-17T04:05:00Z",
             "afibStartTime": "2026-03-17T04:00:00Z", "symptoms": ["Palpitations", "Dizziness"]},
            {"id": "e7", "eventType": "ventolin", "timestamp": "2026-03-16T22:00:00Z",
             "context": "Preventive"},
            {"id": "bad", "eventType": "bp_hr", "timestamp": "not a time", "systolic": 120},
        ],
        "medications": [
            {"id": "m1", "name": "Sotalol Hydrochloride 80mg", "dosage": "40mg",
             "schedule": "Both", "afibRelevant": True},
            {"id": "m2", "name": "Magnesium Glycinate", "dosage": "400mg", "schedule": "Morning"},
        ],
        "settings": [
            {"key": "userHeight", "value": 190},
            {"key": "drinksAlcohol", "value": "no"},
        ],
    }


def write_export(path: Path, data: dict | list) -> Path:
    with open(path, "w") as f:
        json.dump(data, f)
    return path


@pytest.fixture
def export_file(tmp_path: Path) -> Path:
    return write_export(tmp_path / "journal.json", legacy_export())
