"""Tests for pulselog.analytics.summary -- daily journal summary."""

import json

from pulselog.analytics.summary import DailySummary, build_daily_summary
from pulselog.config import UserSettings

from tests.conftest import (
    DEFINITIONS,
    NOW,
    TODAY,
    TZ,
    at,
    make_dose,
    make_drink,
    make_episode,
    make_food,
    make_inhaler,
    make_reading,
    make_skip,
    make_sleep,
    make_steps,
    make_walk,
    make_weight,
    streams_of,
)


def _today_streams():
    return streams_of(
        make_episode(at(0, 9), 30),
        make_episode(at(0, 19, 30), None),
        make_episode(at(1, 9), 60),
        make_dose(at(0, 7, 30)),
        make_skip(at(0, 19)),
        make_reading(at(0, 6), 118, 76, 64),
        make_reading(at(0, 8), 130, 85, 70),
        make_sleep(at(0, 6), 420),
        make_sleep(at(1, 6), 300),
        make_weight(at(0, 7), 94.0),
        make_walk(at(0, 12), 30),
        make_walk(at(0, 20), 15, closed=False),
        make_steps(at(0, 12), 3000),
        make_steps(at(0, 18), 2000),
        make_food(at(0, 12), calories=500, protein_g=30, sodium_mg=800),
        make_drink(at(0, 8), volume_ml=250, caffeine_mg=95),
        make_inhaler(at(0, 10)),
    )


class TestDailySummary:
    def test_today(self):
        s = build_daily_summary(TODAY, _today_streams(), DEFINITIONS,
                                UserSettings(user_height_cm=180), NOW, TZ)
        assert s.date == "2026-03-18"
        assert s.arrhythmia_count == 2
        assert s.arrhythmia_total_min == 30
        assert s.arrhythmia_active_min == 30
        assert s.sleep_total_min == 420
        assert s.sleep_active_min is None
        assert s.weight_kg == 94.0
        assert s.bmi == 29.0
        assert s.walk_total_min == 30
        assert s.walk_active_min == 15
        assert s.steps_total == 5000
        assert s.calories == 500
        assert s.caffeine_mg == 95
        assert s.fluid_ml == 250
        assert s.meds_taken == 1
        assert s.meds_expected == 4
        assert s.inhaler_uses == 1

    def test_readings_with_context(self):
        s = build_daily_summary(TODAY, _today_streams(), DEFINITIONS, UserSettings(), NOW, TZ)
        assert [r["medication"] for r in s.bp_readings] == ["Pre-Meds", "Post-Meds (30m)"]
        assert [r["category"] for r in s.bp_readings] == ["Normal", "Elevated"]
        assert (s.last_systolic, s.last_diastolic, s.last_heart_rate) == (130, 85, 70)

    def test_past_day_has_no_active_minutes(self):
        s = build_daily_summary("2026-03-17", _today_streams(), DEFINITIONS, UserSettings(), NOW, TZ)
        assert s.arrhythmia_count == 1
        assert s.arrhythmia_total_min == 60
        assert s.arrhythmia_active_min is None
        assert s.walk_active_min is None
        assert s.sleep_total_min == 300

    def test_empty_day(self):
        s = build_daily_summary(TODAY, streams_of(), (), UserSettings(), NOW, TZ)
        assert s.bp_readings == []
        assert s.last_systolic is None
        assert s.bmi is None
        assert s.meds_expected == 0

    def test_json(self):
        s = build_daily_summary(TODAY, _today_streams(), DEFINITIONS, UserSettings(), NOW, TZ)
        data = json.loads(s.to_json())
        assert data["date"] == "2026-03-18"
        assert data["bp_readings"][1]["systolic"] == 130

    def test_repr(self):
        assert repr(DailySummary(date="2026-03-18")) == (
            "DailySummary(2026-03-18: afib=0x/0min, sleep=0min, meds=0/0)"
        )
