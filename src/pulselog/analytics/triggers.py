"""Trigger correlation over a trailing horizon of arrhythmia episodes.

For every closed episode starting inside the horizon, each candidate
factor is checked in its own lookback window relative to the episode
start.  A factor's percent is the share of *episodes* (not days) for
which it fired.

Window conventions:

* "same day" checks cover the whole local calendar day of the start,
* "day or day before" checks cover that day and the previous one,
* rolling windows are ``[start - w, start]``, except exercise which is
  the open interval ``(start - 3h, start)``.

The only piece of state is the caffeine baseline (mean daily caffeine on
non-episode days with intake logged).  It is computed once per call and
reused for every episode.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Iterable, Sequence

import numpy as np
import structlog

from pulselog.analytics.streams import Streams, by_day
from pulselog.config import UserSettings
from pulselog.models import (
    ArrhythmiaEvent,
    MedicationDefinition,
    MedStatus,
    is_afib_relevant,
)
from pulselog.timeutil import local_date, local_datetime, round_half_up

logger = structlog.get_logger(__name__)

HORIZON_DAYS = 90

POOR_SLEEP_MIN = 360
ELEVATED_SYSTOLIC = 140
LOW_FLUID_ML = 1500
LARGE_MEAL_KCAL = 500
ACUTE_CAFFEINE_MG = 80
HIGH_STRESS_LEVEL = 4
ONSET_TAG_MIN_PERCENT = 20

FLUID_WINDOW = timedelta(hours=24)
MEAL_WINDOW = timedelta(hours=4)
EXERCISE_WINDOW = timedelta(hours=3)
ACUTE_CAFFEINE_WINDOW = timedelta(hours=1)
ALCOHOL_WINDOW = timedelta(hours=24)

ELECTROLYTE_PATTERN = re.compile(r"magnesium|electrolyte|potassium", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Horizon
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Horizon:
    """The trailing window of local days the engine looks at."""

    start: datetime  # local midnight of the first day
    end: datetime  # "now"
    days: tuple[date, ...]

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end

    def __repr__(self) -> str:
        return f"Horizon({self.days[0].isoformat()}..{self.days[-1].isoformat()}, {len(self.days)} days)"


def horizon(now: datetime, tz: tzinfo | None = None, days: int = HORIZON_DAYS) -> Horizon:
    """*days* local dates ending today; starts at local midnight, ends at *now*."""
    today = local_date(now, tz)
    all_days = tuple(today - timedelta(days=i) for i in range(days - 1, -1, -1))
    return Horizon(start=local_datetime(all_days[0], time.min, tz), end=now, days=all_days)


def horizon_episodes(episodes: Iterable[ArrhythmiaEvent], hz: Horizon) -> list[ArrhythmiaEvent]:
    """Closed episodes whose start falls in the horizon, oldest first."""
    found = [e for e in episodes if e.is_closed and hz.contains(e.start_time)]
    return sorted(found, key=lambda e: e.start_time)


def split_days(
    episodes: Iterable[ArrhythmiaEvent],
    hz: Horizon,
    tz: tzinfo | None = None,
) -> tuple[list[date], list[date]]:
    """Partition every horizon day into (episode days, non-episode days)."""
    starts = {local_date(e.start_time, tz) for e in horizon_episodes(episodes, hz)}
    episode_days = [d for d in hz.days if d in starts]
    other_days = [d for d in hz.days if d not in starts]
    return episode_days, other_days


# ---------------------------------------------------------------------------
# Factor catalogue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FactorInfo:
    key: str
    label: str
    icon_key: str
    color_key: str


# Declaration order is also the tie-break order of the ranked list
FACTORS: tuple[FactorInfo, ...] = (
    FactorInfo("missed_afib_med", "Missed AFib medication", "pill", "red"),
    FactorInfo("missed_med", "Missed medication", "pill", "orange"),
    FactorInfo("high_caffeine", "Above-average caffeine", "coffee", "brown"),
    FactorInfo("poor_sleep", "Poor sleep (<6h)", "moon", "indigo"),
    FactorInfo("elevated_bp", "Elevated BP (>140)", "heart", "red"),
    FactorInfo("low_fluid", "Low fluid (<1.5L in 24h)", "droplet", "blue"),
    FactorInfo("large_meal", "Large meal (>500 kcal in 4h)", "utensils", "amber"),
    FactorInfo("exercise", "Exercise within 3h", "walk", "green"),
    FactorInfo("acute_caffeine", "Caffeine within 1h", "coffee", "brown"),
    FactorInfo("high_stress", "High stress", "bolt", "purple"),
    FactorInfo("alcohol", "Alcohol in prior 24h", "wine", "rose"),
    FactorInfo("missed_electrolyte", "Missed magnesium/electrolyte", "flask", "teal"),
)

FACTOR_BY_KEY = {f.key: f for f in FACTORS}

ONSET_PREFIX = "onset:"


@dataclass(frozen=True)
class TriggerFactor:
    """One row of the ranked trigger list."""

    key: str
    label: str
    count: int
    percent: int
    icon_key: str
    color_key: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "count": self.count,
            "percent": self.percent,
            "icon": self.icon_key,
            "color": self.color_key,
        }


# ---------------------------------------------------------------------------
# Per-episode evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FactorContext:
    """Inputs shared by every episode's factor checks."""

    streams: Streams
    definitions: tuple[MedicationDefinition, ...]
    settings: UserSettings
    tz: tzinfo | None
    caffeine_baseline: float | None
    caffeine_by_day: dict[date, float]


def daily_caffeine(streams: Streams, tz: tzinfo | None = None) -> dict[date, float]:
    """Total caffeine per local day, for days with any food or drink logged."""
    return {
        day: float(sum(e.caffeine_mg for e in items))
        for day, items in by_day(streams.intake, tz).items()
    }


def caffeine_baseline(
    caffeine_by_day: dict[date, float],
    non_episode_days: Sequence[date],
) -> float | None:
    """Mean daily caffeine over every non-episode day in the horizon.

    A day with nothing logged counts as 0 mg.
    """
    if not non_episode_days:
        return None
    return float(np.mean([caffeine_by_day.get(d, 0.0) for d in non_episode_days]))


def build_factor_context(
    streams: Streams,
    definitions: Sequence[MedicationDefinition],
    settings: UserSettings,
    non_episode_days: Sequence[date],
    tz: tzinfo | None = None,
) -> FactorContext:
    per_day = daily_caffeine(streams, tz)
    return FactorContext(
        streams=streams,
        definitions=tuple(definitions),
        settings=settings,
        tz=tz,
        caffeine_baseline=caffeine_baseline(per_day, non_episode_days),
        caffeine_by_day=per_day,
    )


def _in_window(ts: datetime, start: datetime, width: timedelta) -> bool:
    return start - width <= ts <= start


def _skipped_near(day: date, ctx: FactorContext) -> list:
    """Skipped doses on *day* or the day before."""
    days = {day, day - timedelta(days=1)}
    return [
        m for m in ctx.streams.medication
        if m.status == MedStatus.SKIPPED and local_date(m.timestamp, ctx.tz) in days
    ]


def prior_sleep(
    episode: ArrhythmiaEvent,
    streams: Streams,
    tz: tzinfo | None = None,
):
    """The closed sleep session waking on the episode's day, nearest its start."""
    day = local_date(episode.start_time, tz)
    sessions = [
        s for s in streams.sleep
        if s.end_time is not None and local_date(s.end_time, tz) == day
    ]
    if not sessions:
        return None
    return min(sessions, key=lambda s: abs((s.end_time - episode.start_time).total_seconds()))


def episode_factors(episode: ArrhythmiaEvent, ctx: FactorContext) -> list[str]:
    """Keys of the catalogue factors that fired for one episode."""
    s = ctx.streams
    tz = ctx.tz
    start = episode.start_time
    day = local_date(start, tz)
    fired: list[str] = []

    skipped = _skipped_near(day, ctx)
    if any(is_afib_relevant(m.med_name, ctx.definitions) for m in skipped):
        fired.append("missed_afib_med")
    elif skipped:
        fired.append("missed_med")

    day_caffeine = ctx.caffeine_by_day.get(day, 0.0)
    if ctx.caffeine_baseline is not None and day_caffeine > 0 and day_caffeine > ctx.caffeine_baseline:
        fired.append("high_caffeine")

    sleep = prior_sleep(episode, s, tz)
    if sleep is not None and (sleep.duration_min or 0) < POOR_SLEEP_MIN:
        fired.append("poor_sleep")

    if any(
        r.systolic and r.systolic > ELEVATED_SYSTOLIC and local_date(r.timestamp, tz) == day
        for r in s.readings
    ):
        fired.append("elevated_bp")

    fluid = sum(d.volume_ml for d in s.drinks if _in_window(d.timestamp, start, FLUID_WINDOW))
    if 0 < fluid < LOW_FLUID_ML:
        fired.append("low_fluid")

    calories = sum(f.calories for f in s.food if _in_window(f.timestamp, start, MEAL_WINDOW))
    if calories > LARGE_MEAL_KCAL:
        fired.append("large_meal")

    if any(
        w.end_time is not None and start - EXERCISE_WINDOW < w.end_time < start
        for w in s.walks
    ):
        fired.append("exercise")

    if any(
        e.caffeine_mg >= ACUTE_CAFFEINE_MG and _in_window(e.timestamp, start, ACUTE_CAFFEINE_WINDOW)
        for e in s.intake
    ):
        fired.append("acute_caffeine")

    if any(
        st.level >= HIGH_STRESS_LEVEL and local_date(st.timestamp, tz) == day
        for st in s.stress
    ):
        fired.append("high_stress")

    if ctx.settings.drinks_alcohol:
        units = sum(d.alcohol_units for d in s.drinks if _in_window(d.timestamp, start, ALCOHOL_WINDOW))
        if units > 0:
            fired.append("alcohol")

    if any(ELECTROLYTE_PATTERN.search(m.med_name) for m in skipped):
        fired.append("missed_electrolyte")

    return fired


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _percent(count: int, total: int) -> int:
    return round_half_up(count / total * 100) if total else 0


def _onset_rows(episodes: Sequence[ArrhythmiaEvent]) -> list[TriggerFactor]:
    total = len(episodes)
    counts: dict[str, int] = {}
    for e in episodes:
        for tag in e.onset_context:
            counts[tag] = counts.get(tag, 0) + 1
    rows = []
    for tag in sorted(counts):
        pct = _percent(counts[tag], total)
        if pct >= ONSET_TAG_MIN_PERCENT:
            rows.append(TriggerFactor(
                key=f"{ONSET_PREFIX}{tag}",
                label=f"Onset: {tag}",
                count=counts[tag],
                percent=pct,
                icon_key="tag",
                color_key="slate",
            ))
    return rows


def rank_triggers(
    streams: Streams,
    definitions: Sequence[MedicationDefinition],
    settings: UserSettings,
    now: datetime,
    tz: tzinfo | None = None,
    horizon_days: int = HORIZON_DAYS,
) -> list[TriggerFactor]:
    """Ranked factor prevalence over the horizon's episodes.

    Returns an empty list when the horizon has no closed episodes; the
    caller should read that as "insufficient data", not "no triggers".
    """
    hz = horizon(now, tz, horizon_days)
    episodes = horizon_episodes(streams.arrhythmia, hz)
    total = len(episodes)
    if total == 0:
        logger.debug("triggers_ranked", episodes=0, factors=0)
        return []

    _, non_episode_days = split_days(episodes, hz, tz)
    ctx = build_factor_context(streams, definitions, settings, non_episode_days, tz)

    counts = {f.key: 0 for f in FACTORS}
    for episode in episodes:
        for key in episode_factors(episode, ctx):
            counts[key] += 1

    rows = [
        TriggerFactor(f.key, f.label, counts[f.key], _percent(counts[f.key], total), f.icon_key, f.color_key)
        for f in FACTORS
        if counts[f.key] > 0
    ]
    rows.extend(_onset_rows(episodes))
    # sorted() is stable, so equal percents keep declaration order
    ranked = sorted(rows, key=lambda r: -r.percent)

    logger.debug(
        "triggers_ranked",
        episodes=total,
        factors=len(ranked),
        caffeine_baseline=ctx.caffeine_baseline,
    )
    return ranked
