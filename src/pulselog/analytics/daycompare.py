"""Day-level comparison of daily metrics on episode vs non-episode days.

Uses the same horizon day partition as the trigger engine, but averages
per day: each metric is reduced to one value per local day, then those
values are averaged separately over episode and non-episode days.  A day
with no data for a metric is skipped for that metric only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any, Callable, Sequence

import numpy as np

from pulselog.analytics.streams import Streams, by_day, closed
from pulselog.analytics.triggers import HORIZON_DAYS, horizon, split_days
from pulselog.config import UserSettings
from pulselog.models import MedStatus
from pulselog.timeutil import event_date_key

DailyValues = dict[date, float]


@dataclass(frozen=True)
class DayComparisonRow:
    key: str
    label: str
    unit: str
    episode_mean: float | None
    non_episode_mean: float | None
    episode_days: int  # days that had data
    non_episode_days: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "unit": self.unit,
            "episodeDays": self.episode_mean,
            "nonEpisodeDays": self.non_episode_mean,
            "episodeDaysWithData": self.episode_days,
            "nonEpisodeDaysWithData": self.non_episode_days,
        }


# ---------------------------------------------------------------------------
# Per-day extractors
# ---------------------------------------------------------------------------


def _sum_by_day(events, value: Callable[[Any], float], tz: tzinfo | None) -> DailyValues:
    return {d: float(sum(value(e) for e in items)) for d, items in by_day(events, tz).items()}


def _mean_by_day(values: dict[date, list[float]]) -> DailyValues:
    return {d: float(np.mean(v)) for d, v in values.items() if v}


def caffeine_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    return _sum_by_day(streams.intake, lambda e: e.caffeine_mg, tz)


def sleep_hours_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    """Hours slept, filed under the day the session ended."""
    out: DailyValues = {}
    for s in closed(streams.sleep):
        day = event_date_key(s, tz)
        out[day] = out.get(day, 0.0) + (s.duration_min or 0) / 60.0
    return out


def adherence_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    out: DailyValues = {}
    for day, doses in by_day(streams.medication, tz).items():
        taken = sum(1 for m in doses if m.status == MedStatus.TAKEN)
        out[day] = taken / len(doses) * 100
    return out


def bp_per_day(streams: Streams, tz: tzinfo | None, attr: str) -> DailyValues:
    values: dict[date, list[float]] = {}
    for day, readings in by_day(streams.readings, tz).items():
        values[day] = [float(getattr(r, attr)) for r in readings if getattr(r, attr)]
    return _mean_by_day(values)


def fluid_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    return _sum_by_day(streams.drinks, lambda e: e.volume_ml, tz)


def walk_minutes_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    return _sum_by_day(closed(streams.walks), lambda e: e.duration_min or 0, tz)


def stress_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    values = {d: [float(s.level) for s in items] for d, items in by_day(streams.stress, tz).items()}
    return _mean_by_day(values)


def alcohol_per_day(streams: Streams, tz: tzinfo | None) -> DailyValues:
    return _sum_by_day(streams.drinks, lambda e: e.alcohol_units, tz)


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


def _group_mean(per_day: DailyValues, days: Sequence[date]) -> tuple[float | None, int]:
    values = [per_day[d] for d in days if d in per_day]
    if not values:
        return None, 0
    return round(float(np.mean(values)), 1), len(values)


def _row(key: str, label: str, unit: str, per_day: DailyValues,
         episode_days: Sequence[date], other_days: Sequence[date]) -> DayComparisonRow:
    ep_mean, ep_n = _group_mean(per_day, episode_days)
    other_mean, other_n = _group_mean(per_day, other_days)
    return DayComparisonRow(key, label, unit, ep_mean, other_mean, ep_n, other_n)


def day_comparison(
    streams: Streams,
    settings: UserSettings,
    now: datetime,
    tz: tzinfo | None = None,
    horizon_days: int = HORIZON_DAYS,
) -> list[DayComparisonRow]:
    """Episode-day vs non-episode-day means for each daily metric."""
    hz = horizon(now, tz, horizon_days)
    episode_days, other_days = split_days(streams.arrhythmia, hz, tz)

    metrics: list[tuple[str, str, str, DailyValues]] = [
        ("caffeine", "Caffeine", "mg", caffeine_per_day(streams, tz)),
        ("sleep", "Sleep", "h", sleep_hours_per_day(streams, tz)),
        ("adherence", "Medication adherence", "%", adherence_per_day(streams, tz)),
        ("systolic", "Systolic", "mmHg", bp_per_day(streams, tz, "systolic")),
        ("diastolic", "Diastolic", "mmHg", bp_per_day(streams, tz, "diastolic")),
        ("fluid", "Fluid", "mL", fluid_per_day(streams, tz)),
        ("walk", "Walking", "min", walk_minutes_per_day(streams, tz)),
        ("stress", "Stress level", "1-5", stress_per_day(streams, tz)),
    ]
    if settings.drinks_alcohol:
        metrics.append(("alcohol", "Alcohol", "units", alcohol_per_day(streams, tz)))

    return [_row(key, label, unit, per_day, episode_days, other_days)
            for key, label, unit, per_day in metrics]
