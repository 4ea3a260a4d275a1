"""Analytics pipeline: pull a snapshot from the store and query it.

All data is fetched up front by :func:`load_snapshot` and binned once.
A :class:`ViewQuery` then carries the navigation state (reference time,
zone and week/month offsets) explicitly.  It is frozen, so moving to
another week means building a new query with :meth:`ViewQuery.with_offsets`.
Every method is a pure function of the query, and calling it twice gives
the same result.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Iterable

import structlog

from pulselog.analytics.context import ReadingContext, reading_context
from pulselog.analytics.daycompare import DayComparisonRow, day_comparison
from pulselog.analytics.narrative import EpisodeCard, build_episode_cards
from pulselog.analytics.periods import (
    MetricFamily,
    PeriodStats,
    monthly_comparison,
    period_stats,
)
from pulselog.analytics.ranges import DateRange, clamp_offset, month_range, week_range
from pulselog.analytics.streams import Streams, bin_events
from pulselog.analytics.summary import DailySummary, build_daily_summary
from pulselog.analytics.triggers import HORIZON_DAYS, TriggerFactor, rank_triggers
from pulselog.config import UserSettings
from pulselog.models import Event, EventType, MedicationDefinition, ReadingEvent
from pulselog.store import EventStore
from pulselog.timeutil import local_date

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Everything the engine reads, fetched once."""

    streams: Streams
    definitions: tuple[MedicationDefinition, ...] = ()
    settings: UserSettings = field(default_factory=UserSettings)

    @classmethod
    def from_events(
        cls,
        events: Iterable[Event],
        definitions: Iterable[MedicationDefinition] = (),
        settings: UserSettings | None = None,
    ) -> Snapshot:
        return cls(bin_events(events), tuple(definitions), settings or UserSettings())


def load_snapshot(store: EventStore, limit: int = 5000) -> Snapshot:
    """Fetch every event type, the definitions and the settings.

    *limit* applies per type, so a dense stream never crowds a sparse one
    out of the snapshot.
    """
    events = [e for t in EventType for e in store.fetch_by_type(t, limit)]
    snapshot = Snapshot.from_events(events, store.list_definitions(), store.settings())
    logger.debug("snapshot_loaded", events=len(snapshot.streams), definitions=len(snapshot.definitions))
    return snapshot


@dataclass(frozen=True)
class ViewQuery:
    """Stateless query over a snapshot for one view.

    Offsets count back from *now* and are clamped at 0.
    """

    snapshot: Snapshot
    now: datetime
    tz: tzinfo | None = None
    week_offset: int = 0
    month_offset: int = 0
    horizon_days: int = HORIZON_DAYS

    def __post_init__(self) -> None:
        object.__setattr__(self, "week_offset", clamp_offset(self.week_offset))
        object.__setattr__(self, "month_offset", clamp_offset(self.month_offset))

    @property
    def streams(self) -> Streams:
        return self.snapshot.streams

    def with_offsets(self, week_offset: int | None = None, month_offset: int | None = None) -> ViewQuery:
        changes = {}
        if week_offset is not None:
            changes["week_offset"] = week_offset
        if month_offset is not None:
            changes["month_offset"] = month_offset
        return dataclasses.replace(self, **changes)

    # -- windows -------------------------------------------------------------

    def week(self) -> DateRange:
        return week_range(self.week_offset, self.now, self.tz)

    def month(self) -> DateRange:
        return month_range(self.month_offset, self.now, self.tz)

    # -- period stats --------------------------------------------------------

    def period_stats(self, family: MetricFamily | str) -> PeriodStats:
        return period_stats(family, self.streams, self.snapshot.settings,
                            self.week_offset, self.now, self.tz)

    def all_period_stats(self) -> dict[MetricFamily, PeriodStats]:
        return {family: self.period_stats(family) for family in MetricFamily}

    def monthly(self, family: MetricFamily | str) -> PeriodStats:
        return monthly_comparison(family, self.streams, self.month_offset, self.now, self.tz)

    # -- correlation ---------------------------------------------------------

    def triggers(self) -> list[TriggerFactor]:
        return rank_triggers(self.streams, self.snapshot.definitions, self.snapshot.settings,
                             self.now, self.tz, self.horizon_days)

    def day_comparison(self) -> list[DayComparisonRow]:
        return day_comparison(self.streams, self.snapshot.settings, self.now, self.tz,
                              self.horizon_days)

    def episode_cards(self, limit: int | None = None) -> list[EpisodeCard]:
        return build_episode_cards(self.streams, self.snapshot.definitions, self.snapshot.settings,
                                   self.now, self.tz, limit, self.horizon_days)

    # -- per day / per reading -----------------------------------------------

    def daily_summary(self, day: date | str | None = None) -> DailySummary:
        day = day or local_date(self.now, self.tz)
        return build_daily_summary(day, self.streams, self.snapshot.definitions,
                                   self.snapshot.settings, self.now, self.tz)

    def reading_contexts(self, limit: int | None = None) -> list[tuple[ReadingEvent, ReadingContext]]:
        """Context bundles for readings, newest first."""
        s = self.streams
        readings = sorted(s.readings, key=lambda r: r.timestamp, reverse=True)
        if limit is not None:
            readings = readings[:limit]
        return [
            (r, reading_context(r, s.medication, s.walks, s.food, s.drinks, self.tz))
            for r in readings
        ]
