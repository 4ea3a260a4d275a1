"""Analytics engine for computing insights from journal events.

Modules:
    streams    -- Per-type binning of a fetched event snapshot
    context    -- Contextual classification of readings (meds, walks, meals, BP category)
    ranges     -- Week / month windows and partitioning
    badges     -- Period-over-period comparison badges and stat items
    periods    -- Per-family period statistics
    triggers   -- Trigger correlation over the trailing horizon
    daycompare -- Episode-day vs non-episode-day metric means
    narrative  -- Per-episode insight cards
    summary    -- Daily summary aggregation
    pipeline   -- Snapshot loading and the view query object
"""

from pulselog.analytics.streams import Streams, bin_events
from pulselog.analytics.context import (
    BpCategory,
    ContextBucket,
    ContextResult,
    ReadingContext,
    ReadingSlot,
    bp_category,
    caffeine_context,
    context_at,
    meal_context,
    medication_context,
    reading_context,
    reading_slot,
    walk_context,
)
from pulselog.analytics.ranges import DateRange, month_range, week_range
from pulselog.analytics.badges import Badge, BadgeColor, StatItem, comparison_badge
from pulselog.analytics.periods import (
    MetricFamily,
    PeriodStats,
    monthly_comparison,
    period_stats,
)
from pulselog.analytics.triggers import (
    Horizon,
    TriggerFactor,
    episode_factors,
    rank_triggers,
    split_days,
)
from pulselog.analytics.daycompare import DayComparisonRow, day_comparison
from pulselog.analytics.narrative import EpisodeCard, build_episode_cards, link_symptoms
from pulselog.analytics.summary import DailySummary, build_daily_summary
from pulselog.analytics.pipeline import Snapshot, ViewQuery, load_snapshot

__all__ = [
    # streams
    "Streams",
    "bin_events",
    # context
    "BpCategory",
    "ContextBucket",
    "ContextResult",
    "ReadingContext",
    "ReadingSlot",
    "bp_category",
    "caffeine_context",
    "context_at",
    "meal_context",
    "medication_context",
    "reading_context",
    "reading_slot",
    "walk_context",
    # ranges
    "DateRange",
    "month_range",
    "week_range",
    # badges
    "Badge",
    "BadgeColor",
    "StatItem",
    "comparison_badge",
    # periods
    "MetricFamily",
    "PeriodStats",
    "monthly_comparison",
    "period_stats",
    # triggers
    "Horizon",
    "TriggerFactor",
    "episode_factors",
    "rank_triggers",
    "split_days",
    # daycompare
    "DayComparisonRow",
    "day_comparison",
    # narrative
    "EpisodeCard",
    "build_episode_cards",
    "link_symptoms",
    # summary
    "build_daily_summary",
    "DailySummary",
    # pipeline
    "Snapshot",
    "ViewQuery",
    "load_snapshot",
]
