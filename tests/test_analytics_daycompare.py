"""Tests for pulselog.analytics.daycompare -- episode vs non-episode day means."""

from pulselog.analytics.daycompare import day_comparison
from pulselog.config import UserSettings
from pulselog.models import MedStatus

from tests.conftest import (
    NOW,
    TZ,
    at,
    make_dose,
    make_drink,
    make_episode,
    make_food,
    make_reading,
    make_sleep,
    make_stress,
    make_walk,
    streams_of,
)


def _rows(*events, settings=UserSettings()):
    return {r.key: r for r in day_comparison(streams_of(*events), settings, NOW, TZ)}


EPISODES = (make_episode(at(5, 14)), make_episode(at(10, 14)))


class TestDayComparison:
    def test_metric_order(self):
        keys = [r.key for r in day_comparison(streams_of(*EPISODES), UserSettings(), NOW, TZ)]
        assert keys == ["caffeine", "sleep", "adherence", "systolic", "diastolic",
                        "fluid", "walk", "stress"]

    def test_alcohol_only_when_tracked(self):
        rows = _rows(*EPISODES, make_drink(at(5, 20), alcohol_units=2),
                     settings=UserSettings(drinks_alcohol=True))
        assert rows["alcohol"].episode_mean == 2.0

    def test_caffeine_means(self):
        rows = _rows(
            *EPISODES,
            make_food(at(5, 8), caffeine_mg=200),
            make_food(at(10, 8), caffeine_mg=100),
            make_food(at(20, 8), caffeine_mg=50),
            make_food(at(21, 8), caffeine_mg=50),
        )
        caffeine = rows["caffeine"]
        assert caffeine.episode_mean == 150.0
        assert caffeine.non_episode_mean == 50.0
        assert (caffeine.episode_days, caffeine.non_episode_days) == (2, 2)

    def test_days_without_data_skipped_per_metric(self):
        rows = _rows(*EPISODES, make_sleep(at(5, 6), 420), make_sleep(at(20, 6), 480))
        assert rows["sleep"].episode_mean == 7.0
        assert rows["sleep"].non_episode_mean == 8.0
        assert rows["sleep"].episode_days == 1

    def test_no_data_is_none(self):
        rows = _rows(*EPISODES)
        assert rows["fluid"].episode_mean is None
        assert rows["fluid"].non_episode_mean is None
        assert rows["fluid"].to_dict()["episodeDays"] is None

    def test_adherence_and_bp(self):
        rows = _rows(
            *EPISODES,
            make_dose(at(5, 8)),
            make_dose(at(5, 20), status=MedStatus.SKIPPED),
            make_dose(at(20, 8)),
            make_reading(at(5, 9), 140, 90),
            make_reading(at(5, 18), 150, 100),
            make_reading(at(20, 9), 120, 80),
            make_reading(at(21, 9), heart_rate=70),
        )
        assert rows["adherence"].episode_mean == 50.0
        assert rows["adherence"].non_episode_mean == 100.0
        assert rows["systolic"].episode_mean == 145.0
        assert rows["systolic"].non_episode_mean == 120.0
        assert rows["systolic"].non_episode_days == 1
        assert rows["diastolic"].episode_mean == 95.0

    def test_walk_and_stress(self):
        rows = _rows(
            *EPISODES,
            make_walk(at(5, 8), 30),
            make_walk(at(5, 18), 20),
            make_walk(at(20, 18), 60, closed=False),
            make_stress(at(5, 9), 4),
            make_stress(at(5, 19), 5),
            make_stress(at(20, 9), 2),
        )
        assert rows["walk"].episode_mean == 50.0
        assert rows["walk"].non_episode_mean is None
        assert rows["stress"].episode_mean == 4.5
        assert rows["stress"].non_episode_mean == 2.0

    def test_no_episodes_everything_is_non_episode(self):
        rows = _rows(make_food(at(3, 8), caffeine_mg=90))
        assert rows["caffeine"].episode_mean is None
        assert rows["caffeine"].non_episode_mean == 90.0
