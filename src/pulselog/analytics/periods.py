"""Per-family period statistics with period-over-period badges.

Each metric family reduces the events of one window (a week, or a month
for the arrhythmia and inhaler families) to a short list of
:class:`~pulselog.analytics.badges.StatItem`, comparing against the
immediately preceding window of the same length.

Conventions shared by every family:

* durations come from *closed* intervals only; open ones are skipped,
* empty windows give zeros, never ``None`` or an exception,
* percentages are ``taken / total * 100`` rounded half up, 0 when empty.

Weight is the odd one out and has no period split at all, see
:func:`weight_stats`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

import numpy as np

from pulselog.analytics.badges import StatItem, compared
from pulselog.analytics.context import ReadingSlot, bp_category, reading_slot
from pulselog.analytics.ranges import (
    DateRange,
    filter_range,
    month_range,
    previous_month,
    previous_week,
    trailing_days,
    week_range,
)
from pulselog.analytics.streams import Streams, bin_events, by_day, closed
from pulselog.config import UserSettings
from pulselog.models import (
    ArrhythmiaEvent,
    Event,
    FoodEvent,
    InhalerEvent,
    MedicationEvent,
    MedStatus,
    ReadingEvent,
    SleepEvent,
    StepsEvent,
    WalkEvent,
    WeightEvent,
)
from pulselog.timeutil import format_duration, local_date, round_half_up


class MetricFamily(str, Enum):
    ARRHYTHMIA = "arrhythmia"
    BP = "bp"
    SLEEP = "sleep"
    ACTIVITY = "activity"
    NUTRITION = "nutrition"
    MEDICATION = "medication"
    INHALER = "inhaler"
    WEIGHT = "weight"


# Families with an independently navigable month view
MONTHLY_FAMILIES = frozenset({MetricFamily.ARRHYTHMIA, MetricFamily.INHALER})


@dataclass
class PeriodStats:
    """Stats for one family over one window."""

    family: MetricFamily
    period: DateRange | None
    previous_period: DateRange | None
    items: list[StatItem] = field(default_factory=list)

    def item(self, label: str) -> StatItem | None:
        for it in self.items:
            if it.label == label:
                return it
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family.value,
            "period": self.period.label() if self.period else None,
            "previous_period": self.previous_period.label() if self.previous_period else None,
            "stats": [it.to_dict() for it in self.items],
        }

    def __repr__(self) -> str:
        period = repr(self.period) if self.period else "all time"
        return f"PeriodStats({self.family.value}, {period}, {len(self.items)} items)"


# ---------------------------------------------------------------------------
# Small numeric helpers
# ---------------------------------------------------------------------------


def _mean(values: Sequence[float]) -> int:
    """Rounded arithmetic mean, 0 for an empty sequence."""
    if len(values) == 0:
        return 0
    return round_half_up(float(np.mean(np.asarray(values, dtype=np.float64))))


def _durations(events: Sequence) -> list[int]:
    return [e.duration_min or 0 for e in closed(events)]


def adherence_percent(taken: int, total: int) -> int:
    """``taken / total`` as a rounded percentage; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return round_half_up(taken / total * 100)


def _daily_totals(events: Sequence, value: Callable[[Any], float], tz: tzinfo | None) -> list[float]:
    """Sum *value* per local day, for days that have at least one event."""
    return [float(sum(value(e) for e in day_events)) for day_events in by_day(events, tz).values()]


# ---------------------------------------------------------------------------
# Arrhythmia
# ---------------------------------------------------------------------------


def arrhythmia_stats(
    events: Sequence[ArrhythmiaEvent],
    current: DateRange,
    previous: DateRange,
) -> list[StatItem]:
    """Episode count and time-in-arrhythmia, fewer and shorter being better."""
    cur = _durations(filter_range(events, current))
    prev = _durations(filter_range(events, previous))

    total_cur, total_prev = sum(cur), sum(prev)
    avg_cur, avg_prev = _mean(cur), _mean(prev)
    longest = max(cur) if cur else 0

    return [
        compared("Episodes", len(cur), len(prev), lower_is_better=True, unit="episodes"),
        compared("Total Time", total_cur, total_prev, lower_is_better=True,
                 value=format_duration(total_cur)),
        compared("Avg Duration", avg_cur, avg_prev, lower_is_better=True,
                 value=format_duration(avg_cur)),
        StatItem("Longest", format_duration(longest)),
    ]


# ---------------------------------------------------------------------------
# Blood pressure / heart rate
# ---------------------------------------------------------------------------


def _bp_averages(readings: Sequence[ReadingEvent]) -> tuple[int, int, int]:
    sys_vals = [r.systolic for r in readings if r.systolic]
    dia_vals = [r.diastolic for r in readings if r.diastolic]
    hr_vals = [r.heart_rate for r in readings if r.heart_rate]
    return _mean(sys_vals), _mean(dia_vals), _mean(hr_vals)


def _bp_text(systolic: int, diastolic: int) -> str:
    return f"{systolic or '—'}/{diastolic or '—'}"


def bp_stats(
    readings: Sequence[ReadingEvent],
    walks: Sequence[WalkEvent],
    current: DateRange,
    previous: DateRange,
    tz: tzinfo | None = None,
) -> list[StatItem]:
    """Average BP / HR with badges, plus averages per time-of-day slot."""
    cur = filter_range(readings, current)
    prev = filter_range(readings, previous)
    s_cur, d_cur, hr_cur = _bp_averages(cur)
    s_prev, _, hr_prev = _bp_averages(prev)

    avg_bp = compared("Avg BP", s_cur, s_prev, lower_is_better=True, unit="mmHg",
                      value=_bp_text(s_cur, d_cur))
    cat = bp_category(s_cur, d_cur)
    avg_bp.category = cat.label if cat else None

    items = [
        avg_bp,
        compared("Avg HR", hr_cur, hr_prev, lower_is_better=True, unit="BPM",
                 value=hr_cur or "—"),
        compared("Readings", len(cur), len(prev)),
    ]

    with_sys = [r for r in cur if r.systolic]
    if with_sys:
        peak = max(with_sys, key=lambda r: r.systolic)
        peak_cat = bp_category(peak.systolic, peak.diastolic)
        items.append(StatItem("Highest", _bp_text(peak.systolic, peak.diastolic or 0), "mmHg",
                              category=peak_cat.label if peak_cat else None))

    slots: dict[ReadingSlot, list[ReadingEvent]] = {slot: [] for slot in ReadingSlot}
    for r in cur:
        slots[reading_slot(r, walks, tz)].append(r)
    for slot, group in slots.items():
        if not group:
            continue
        s, d, _ = _bp_averages(group)
        slot_cat = bp_category(s, d)
        label = slot.value.replace("-", " ").title().replace(" ", "-")
        items.append(StatItem(f"{label} Avg", _bp_text(s, d), "mmHg",
                              category=slot_cat.label if slot_cat else None))
    return items


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------


def sleep_stats(
    events: Sequence[SleepEvent],
    current: DateRange,
    previous: DateRange,
) -> list[StatItem]:
    cur = _durations(filter_range(events, current))
    prev = _durations(filter_range(events, previous))
    avg_cur, avg_prev = _mean(cur), _mean(prev)
    return [
        compared("Avg Sleep", avg_cur, avg_prev, value=format_duration(avg_cur)),
        StatItem("Best Night", format_duration(max(cur) if cur else 0)),
        StatItem("Worst Night", format_duration(min(cur) if cur else 0)),
        compared("Nights Logged", len(cur), len(prev)),
    ]


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


def activity_stats(
    walks: Sequence[WalkEvent],
    steps: Sequence[StepsEvent],
    current: DateRange,
    previous: DateRange,
    tz: tzinfo | None = None,
) -> list[StatItem]:
    cur = _durations(filter_range(walks, current))
    prev = _durations(filter_range(walks, previous))
    total_cur, total_prev = sum(cur), sum(prev)

    steps_cur = _mean(_daily_totals(filter_range(steps, current), lambda e: e.step_count, tz))
    steps_prev = _mean(_daily_totals(filter_range(steps, previous), lambda e: e.step_count, tz))

    return [
        compared("Walk Time", total_cur, total_prev, value=format_duration(total_cur)),
        compared("Walks", len(cur), len(prev)),
        StatItem("Avg Walk", format_duration(_mean(cur))),
        StatItem("Longest Walk", format_duration(max(cur) if cur else 0)),
        compared("Avg Steps", steps_cur, steps_prev, unit="steps/day"),
    ]


# ---------------------------------------------------------------------------
# Nutrition
# ---------------------------------------------------------------------------


def _nutrition_days(intake: Sequence[FoodEvent], tz: tzinfo | None) -> list[dict[str, float]]:
    """Per-day totals for every local day with at least one item."""
    days = []
    for items in by_day(intake, tz).values():
        days.append({
            "calories": sum(e.calories for e in items),
            "protein_g": sum(e.protein_g for e in items),
            "sodium_mg": sum(e.sodium_mg for e in items),
            "caffeine_mg": sum(e.caffeine_mg for e in items),
            "volume_ml": sum(getattr(e, "volume_ml", 0.0) for e in items),
            "alcohol_units": sum(getattr(e, "alcohol_units", 0.0) for e in items),
        })
    return days


def _protein_goal_pct(days: list[dict[str, float]], target_g: float) -> int:
    met = sum(1 for d in days if d["protein_g"] >= target_g)
    return adherence_percent(met, len(days))


def protein_target(
    settings: UserSettings,
    weights: Sequence[WeightEvent],
    as_of: datetime,
) -> float | None:
    """Daily protein target in grams, from the latest weight at or before *as_of*."""
    if settings.protein_per_kg is None:
        return None
    known = [w for w in weights if w.timestamp <= as_of and w.weight_kg > 0]
    if not known:
        return None
    latest = max(known, key=lambda w: w.timestamp)
    return settings.protein_per_kg * latest.weight_kg


def nutrition_stats(
    intake: Sequence[FoodEvent],
    weights: Sequence[WeightEvent],
    settings: UserSettings,
    current: DateRange,
    previous: DateRange,
    tz: tzinfo | None = None,
) -> list[StatItem]:
    """Daily averages over logged days, plus protein-goal adherence."""
    cur = _nutrition_days(filter_range(intake, current), tz)
    prev = _nutrition_days(filter_range(intake, previous), tz)

    def avg(days: list[dict[str, float]], key: str) -> int:
        return _mean([d[key] for d in days])

    items = [
        compared("Avg Calories", avg(cur, "calories"), avg(prev, "calories"), unit="kcal/day"),
        compared("Avg Protein", avg(cur, "protein_g"), avg(prev, "protein_g"), unit="g/day"),
        compared("Avg Fluid", avg(cur, "volume_ml"), avg(prev, "volume_ml"), unit="mL/day"),
        compared("Avg Caffeine", avg(cur, "caffeine_mg"), avg(prev, "caffeine_mg"),
                 lower_is_better=True, unit="mg/day"),
        compared("Avg Sodium", avg(cur, "sodium_mg"), avg(prev, "sodium_mg"),
                 lower_is_better=True, unit="mg/day"),
    ]

    if settings.drinks_alcohol:
        alc_cur = round(sum(d["alcohol_units"] for d in cur), 1)
        alc_prev = round(sum(d["alcohol_units"] for d in prev), 1)
        items.append(compared("Alcohol", alc_cur, alc_prev, lower_is_better=True, unit="units"))

    target_cur = protein_target(settings, weights, current.end)
    if target_cur is not None:
        target_prev = protein_target(settings, weights, previous.end) or target_cur
        pct_cur = _protein_goal_pct(cur, target_cur)
        pct_prev = _protein_goal_pct(prev, target_prev)
        items.append(compared("Protein Goal", pct_cur, pct_prev, unit="%"))

    items.append(compared("Days Logged", len(cur), len(prev)))
    return items


# ---------------------------------------------------------------------------
# Medication and inhaler
# ---------------------------------------------------------------------------


def _dose_counts(meds: Sequence[MedicationEvent]) -> tuple[int, int]:
    taken = sum(1 for m in meds if m.status == MedStatus.TAKEN)
    return taken, len(meds) - taken


def medication_stats(
    meds: Sequence[MedicationEvent],
    current: DateRange,
    previous: DateRange,
) -> list[StatItem]:
    taken_cur, skipped_cur = _dose_counts(filter_range(meds, current))
    taken_prev, skipped_prev = _dose_counts(filter_range(meds, previous))
    pct_cur = adherence_percent(taken_cur, taken_cur + skipped_cur)
    pct_prev = adherence_percent(taken_prev, taken_prev + skipped_prev)
    return [
        compared("Adherence", pct_cur, pct_prev, unit="%"),
        compared("Doses Taken", taken_cur, taken_prev),
        compared("Doses Skipped", skipped_cur, skipped_prev, lower_is_better=True),
    ]


def inhaler_stats(
    uses: Sequence[InhalerEvent],
    current: DateRange,
    previous: DateRange,
    tz: tzinfo | None = None,
) -> list[StatItem]:
    cur = filter_range(uses, current)
    prev = filter_range(uses, previous)
    days_cur = len({local_date(e.timestamp, tz) for e in cur})
    days_prev = len({local_date(e.timestamp, tz) for e in prev})
    return [
        compared("Uses", len(cur), len(prev), lower_is_better=True),
        compared("Days Used", days_cur, days_prev, lower_is_better=True, unit="days"),
    ]


# ---------------------------------------------------------------------------
# Weight
# ---------------------------------------------------------------------------


def bmi(weight_kg: float, height_cm: float | None) -> float | None:
    if not height_cm or height_cm <= 0:
        return None
    return round(weight_kg / (height_cm / 100.0) ** 2, 1)


def goal_progress(first: float, current: float, goal: float) -> int:
    """Share of the way from the first weight to the goal, clamped to 0..100."""
    span = abs(first - goal)
    if span == 0:
        return 100
    pct = abs(first - current) / span * 100
    return round_half_up(min(100.0, max(0.0, pct)))


def _signed(delta: float) -> str:
    delta = round(delta, 1)
    if delta > 0:
        return f"+{delta}"
    if delta < 0:
        return f"-{abs(delta)}"
    return "0.0"


def weight_stats(
    weights: Sequence[WeightEvent],
    settings: UserSettings,
    now: datetime,
    tz: tzinfo | None = None,
) -> list[StatItem]:
    """Current vs starting weight, the trailing-week delta, BMI and goal progress."""
    history = sorted((w for w in weights if w.weight_kg > 0), key=lambda w: w.timestamp)
    if not history:
        return []

    first, current = history[0].weight_kg, history[-1].weight_kg
    week = filter_range(history, trailing_days(7, now, tz))
    week_delta = week[-1].weight_kg - week[0].weight_kg if week else None

    items = [
        StatItem("Current", round(current, 1), "kg"),
        StatItem("Starting", round(first, 1), "kg"),
        StatItem("This Week", _signed(week_delta) if week_delta is not None else "—", "kg"),
        StatItem("Total Change", _signed(current - first), "kg"),
    ]
    current_bmi = bmi(current, settings.user_height_cm)
    if current_bmi is not None:
        items.append(StatItem("BMI", current_bmi))
    if settings.goal_weight_kg is not None:
        items.append(StatItem("Goal Progress", goal_progress(first, current, settings.goal_weight_kg), "%"))
    return items


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _family_items(
    family: MetricFamily,
    streams: Streams,
    settings: UserSettings,
    current: DateRange,
    previous: DateRange,
    tz: tzinfo | None,
) -> list[StatItem]:
    if family == MetricFamily.ARRHYTHMIA:
        return arrhythmia_stats(streams.arrhythmia, current, previous)
    if family == MetricFamily.BP:
        return bp_stats(streams.readings, streams.walks, current, previous, tz)
    if family == MetricFamily.SLEEP:
        return sleep_stats(streams.sleep, current, previous)
    if family == MetricFamily.ACTIVITY:
        return activity_stats(streams.walks, streams.steps, current, previous, tz)
    if family == MetricFamily.NUTRITION:
        return nutrition_stats(streams.intake, streams.weight, settings, current, previous, tz)
    if family == MetricFamily.MEDICATION:
        return medication_stats(streams.medication, current, previous)
    if family == MetricFamily.INHALER:
        return inhaler_stats(streams.inhaler, current, previous, tz)
    raise ValueError(f"no windowed stats for {family.value}")


def period_stats(
    family: MetricFamily | str,
    streams: Streams,
    settings: UserSettings,
    week_offset: int,
    now: datetime,
    tz: tzinfo | None = None,
) -> PeriodStats:
    """Week-over-week stats for one family (weight ignores the offset)."""
    family = MetricFamily(family)
    if family == MetricFamily.WEIGHT:
        return PeriodStats(family, None, None, weight_stats(streams.weight, settings, now, tz))
    current = week_range(week_offset, now, tz)
    previous = previous_week(week_offset, now, tz)
    return PeriodStats(family, current, previous,
                       _family_items(family, streams, settings, current, previous, tz))


def monthly_comparison(
    family: MetricFamily | str,
    events: Streams | Iterable[Event],
    month_offset: int,
    now: datetime,
    tz: tzinfo | None = None,
) -> PeriodStats:
    """Month-over-month stats, only for the arrhythmia and inhaler families.

    Raises:
        ValueError: For a family without a month view.
    """
    family = MetricFamily(family)
    if family not in MONTHLY_FAMILIES:
        raise ValueError(f"no monthly comparison for {family.value}")
    streams = events if isinstance(events, Streams) else bin_events(events)
    current = month_range(month_offset, now, tz)
    previous = previous_month(month_offset, now, tz)
    return PeriodStats(family, current, previous,
                       _family_items(family, streams, UserSettings(), current, previous, tz))
