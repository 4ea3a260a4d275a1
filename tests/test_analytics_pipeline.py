"""Tests for pulselog.analytics.pipeline -- snapshots and view queries."""

from datetime import timedelta

from pulselog.analytics.periods import MetricFamily, weight_stats
from pulselog.analytics.pipeline import Snapshot, ViewQuery, load_snapshot
from pulselog.config import UserSettings
from pulselog.store import MemoryEventStore

from tests.conftest import (
    DEFINITIONS,
    NOW,
    TODAY,
    TZ,
    at,
    make_dose,
    make_episode,
    make_food,
    make_reading,
    make_skip,
    make_walk,
    make_weight,
)

EVENTS = [
    make_episode(at(2, 14), 45, onset=["Resting"]),
    make_episode(at(12, 9), 30),
    make_skip(at(2, 8)),
    make_dose(at(1, 8)),
    make_walk(at(1, 8, 30)),
    make_reading(at(1, 9), 128, 82, 66),
    make_reading(at(1, 20), 141, 91, 75),
]


def _query(**kwargs) -> ViewQuery:
    snapshot = Snapshot.from_events(EVENTS, DEFINITIONS, UserSettings())
    return ViewQuery(snapshot, NOW, TZ, **kwargs)


class TestSnapshot:
    def test_load_from_store(self):
        store = MemoryEventStore(EVENTS, DEFINITIONS, UserSettings(user_height_cm=175))
        snapshot = load_snapshot(store)
        assert len(snapshot.streams) == len(EVENTS)
        assert snapshot.definitions == DEFINITIONS
        assert snapshot.settings.user_height_cm == 175

    def test_limit_is_per_type(self):
        snapshot = load_snapshot(MemoryEventStore(EVENTS), limit=1)
        s = snapshot.streams
        assert (len(s.arrhythmia), len(s.medication), len(s.walks), len(s.readings)) == (1, 1, 1, 1)
        assert s.readings[0].systolic == 141

    def test_dense_stream_does_not_evict_sparse_history(self):
        food = [make_food(NOW - timedelta(minutes=i), calories=100) for i in range(5000)]
        weights = [make_weight(at(300, 7), 100.0), make_weight(at(0, 7), 90.0)]
        snapshot = load_snapshot(MemoryEventStore(food + weights), limit=5000)
        assert len(snapshot.streams.food) == 5000
        items = weight_stats(snapshot.streams.weight, UserSettings(), NOW, TZ)
        assert {it.label: it.value for it in items}["Starting"] == 100.0


class TestViewQuery:
    def test_offsets_clamped(self):
        q = _query(week_offset=-2, month_offset=-1)
        assert (q.week_offset, q.month_offset) == (0, 0)

    def test_with_offsets_is_new_query(self):
        q = _query()
        older = q.with_offsets(week_offset=2)
        assert q.week_offset == 0
        assert older.week_offset == 2
        assert older.month_offset == 0
        assert older.week().last_day == TODAY - timedelta(days=14)

    def test_windows(self):
        q = _query(month_offset=1)
        assert q.week().first_day == TODAY - timedelta(days=6)
        assert q.month().first_day.month == 2

    def test_period_stats_follow_offset(self):
        q = _query()
        assert q.period_stats(MetricFamily.ARRHYTHMIA).item("Episodes").value == 1
        assert q.with_offsets(week_offset=1).period_stats("arrhythmia").item("Episodes").value == 1

    def test_all_period_stats(self):
        stats = _query().all_period_stats()
        assert set(stats) == set(MetricFamily)
        assert stats[MetricFamily.WEIGHT].items == []

    def test_monthly(self):
        assert _query().monthly("arrhythmia").item("Episodes").value == 2

    def test_triggers(self):
        keys = [t.key for t in _query().triggers()]
        assert keys[0] == "missed_afib_med"
        assert "onset:Resting" in keys

    def test_repeat_calls_agree(self):
        q = _query()
        assert q.triggers() == q.triggers()
        assert q.day_comparison() == q.day_comparison()

    def test_episode_cards(self):
        cards = _query().episode_cards(limit=1)
        assert len(cards) == 1
        assert cards[0].duration_label == "45 min"

    def test_daily_summary_defaults_to_today(self):
        assert _query().daily_summary().date == TODAY.isoformat()
        assert _query().daily_summary("2026-03-17").last_systolic == 141

    def test_reading_contexts_newest_first(self):
        pairs = _query().reading_contexts(limit=2)
        assert [r.systolic for r, _ in pairs] == [141, 128]
        evening, morning = (ctx for _, ctx in pairs)
        assert morning.walk.label == "Post-Walk (30m)"
        assert morning.slot.value == "post-walk"
        assert evening.category.label == "High"
