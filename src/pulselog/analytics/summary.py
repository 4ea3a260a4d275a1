"""Daily summary aggregator.

Pulls one local day's worth of every stream into a single DailySummary
that is JSON-serializable.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any, Sequence

from pulselog.analytics.context import bp_category, medication_context
from pulselog.analytics.periods import bmi
from pulselog.analytics.streams import Streams, newest, on_day
from pulselog.config import UserSettings
from pulselog.models import IntervalEvent, MedicationDefinition
from pulselog.timeutil import event_date_key, local_date, minutes_between


@dataclass
class DailySummary:
    """A single day's journal report."""

    date: str  # ISO date string, e.g. "2026-02-13"

    # Arrhythmia
    arrhythmia_count: int = 0
    arrhythmia_total_min: int = 0
    arrhythmia_active_min: int | None = None  # elapsed, while an episode is open

    # Blood pressure / heart rate
    bp_readings: list[dict[str, Any]] = field(default_factory=list)
    last_systolic: int | None = None
    last_diastolic: int | None = None
    last_heart_rate: int | None = None

    # Sleep (sessions filed under the day they end)
    sleep_total_min: int = 0
    sleep_active_min: int | None = None

    # Weight
    weight_kg: float | None = None
    bmi: float | None = None

    # Activity
    walk_total_min: int = 0
    walk_active_min: int | None = None
    steps_total: int = 0

    # Nutrition
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    sodium_mg: float = 0.0
    fluid_ml: float = 0.0
    caffeine_mg: float = 0.0
    alcohol_units: float = 0.0

    # Medication
    meds_taken: int = 0
    meds_expected: int = 0

    inhaler_uses: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly)."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"DailySummary({self.date}: "
            f"afib={self.arrhythmia_count}x/{self.arrhythmia_total_min}min, "
            f"sleep={self.sleep_total_min}min, "
            f"meds={self.meds_taken}/{self.meds_expected})"
        )


def _active_minutes(events: Sequence[IntervalEvent], day: date, now: datetime,
                    tz: tzinfo | None) -> int | None:
    """Elapsed minutes of the newest open interval, when *day* is today."""
    if day != local_date(now, tz):
        return None
    open_ = [e for e in events if not e.is_closed and e.start_time <= now]
    latest = newest(open_)
    return minutes_between(latest.start_time, now) if latest is not None else None


def _closed_total(events: Sequence[IntervalEvent]) -> int:
    return sum(e.duration_min or 0 for e in events if e.is_closed)


def build_daily_summary(
    day: date | str,
    streams: Streams,
    definitions: Sequence[MedicationDefinition],
    settings: UserSettings,
    now: datetime,
    tz: tzinfo | None = None,
) -> DailySummary:
    """Build a daily summary for local *day*.

    Args:
        day: The date for this summary (a date or ISO string).
        streams: Binned events of the snapshot.
        definitions: Current medication definitions (for expected doses).
        settings: User settings (height for BMI).
        now: Reference instant for open intervals.
        tz: Local zone; ``None`` means the system zone.

    Returns:
        A populated DailySummary.
    """
    if isinstance(day, str):
        day = date.fromisoformat(day)
    summary = DailySummary(date=day.isoformat())

    afib = on_day(streams.arrhythmia, day, tz)
    summary.arrhythmia_count = len(afib)
    summary.arrhythmia_total_min = _closed_total(afib)
    summary.arrhythmia_active_min = _active_minutes(streams.arrhythmia, day, now, tz)

    meds_today = on_day(streams.medication, day, tz)
    readings = on_day(streams.readings, day, tz)
    for r in readings:
        cat = bp_category(r.systolic, r.diastolic)
        med = medication_context(r.timestamp, meds_today, tz)
        summary.bp_readings.append({
            "time": r.timestamp.isoformat(),
            "systolic": r.systolic,
            "diastolic": r.diastolic,
            "heart_rate": r.heart_rate,
            "category": cat.label if cat else None,
            "medication": med.label if med else None,
        })
    last = newest(readings)
    if last is not None:
        summary.last_systolic = last.systolic
        summary.last_diastolic = last.diastolic
        summary.last_heart_rate = last.heart_rate

    sleep = [s for s in streams.sleep if s.is_closed and event_date_key(s, tz) == day]
    summary.sleep_total_min = _closed_total(sleep)
    summary.sleep_active_min = _active_minutes(streams.sleep, day, now, tz)

    weights = [w for w in on_day(streams.weight, day, tz) if w.weight_kg > 0]
    latest_weight = newest(weights)
    if latest_weight is not None:
        summary.weight_kg = latest_weight.weight_kg
        summary.bmi = bmi(latest_weight.weight_kg, settings.user_height_cm)

    summary.walk_total_min = _closed_total(on_day(streams.walks, day, tz))
    summary.walk_active_min = _active_minutes(streams.walks, day, now, tz)
    summary.steps_total = sum(s.step_count for s in on_day(streams.steps, day, tz))

    intake = on_day(streams.intake, day, tz)
    summary.calories = sum(e.calories for e in intake)
    summary.protein_g = sum(e.protein_g for e in intake)
    summary.carbs_g = sum(e.carbs_g for e in intake)
    summary.fat_g = sum(e.fat_g for e in intake)
    summary.sodium_mg = sum(e.sodium_mg for e in intake)
    summary.caffeine_mg = sum(e.caffeine_mg for e in intake)
    drinks = on_day(streams.drinks, day, tz)
    summary.fluid_ml = sum(d.volume_ml for d in drinks)
    summary.alcohol_units = sum(d.alcohol_units for d in drinks)

    summary.meds_taken = sum(1 for m in meds_today if m.taken)
    summary.meds_expected = sum(d.doses_per_day for d in definitions)

    summary.inhaler_uses = len(on_day(streams.inhaler, day, tz))
    return summary
