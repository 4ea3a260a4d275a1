"""Tests for pulselog.timeutil -- rounding, parsing and duration labels."""

from datetime import date, datetime, timezone

import pytest

from pulselog.timeutil import (
    day_bounds,
    event_date_key,
    format_duration,
    format_duration_long,
    local_date,
    minutes_between,
    parse_timestamp,
    round_half_up,
)

from tests.conftest import TZ, at, make_reading, make_sleep


class TestRoundHalfUp:
    def test_halves_go_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-2.5) == -2

    def test_plain(self):
        assert round_half_up(66.666) == 67
        assert round_half_up(0.4) == 0


class TestParseTimestamp:
    def test_zulu(self):
        ts = parse_timestamp("2026-03-17T04:00:00Z")
        assert ts == datetime(2026, 3, 17, 4, 0, tzinfo=timezone.utc)

    def test_offset_kept(self):
        ts = parse_timestamp("2026-03-17T14:00:00+10:00")
        assert ts.utcoffset().total_seconds() == 36000

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-03-17T04:00:00").tzinfo == timezone.utc

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
        with pytest.raises(ValueError):
            parse_timestamp(12345)


class TestLocalDays:
    def test_local_date_crosses_midnight(self):
        # 15:00 UTC is 01:00 next day at +10
        ts = datetime(2026, 3, 17, 15, 0, tzinfo=timezone.utc)
        assert local_date(ts, TZ) == date(2026, 3, 18)

    def test_day_bounds(self):
        start, end = day_bounds(date(2026, 3, 18), TZ)
        assert start == at(0, 0)
        assert (end.hour, end.minute, end.second, end.microsecond) == (23, 59, 59, 999000)

    def test_minutes_between(self):
        assert minutes_between(at(0, 7, 50), at(0, 8, 10)) == 20
        assert minutes_between(at(0, 8, 10), at(0, 7, 50)) == -20

    def test_sleep_keyed_by_wake_day(self):
        sleep = make_sleep(at(0, 6, 30), minutes=510)
        assert event_date_key(sleep, TZ) == date(2026, 3, 18)
        assert local_date(sleep.timestamp, TZ) == date(2026, 3, 17)

    def test_other_events_keyed_by_timestamp(self):
        assert event_date_key(make_reading(at(2, 9), heart_rate=60), TZ) == date(2026, 3, 16)


class TestFormatDuration:
    def test_short(self):
        assert format_duration(45) == "45m"
        assert format_duration(0) == "0m"
        assert format_duration(60) == "1h 0m"
        assert format_duration(125) == "2h 5m"

    def test_long(self):
        assert format_duration_long(45) == "45 min"
        assert format_duration_long(60) == "1 hour"
        assert format_duration_long(125) == "2 hours 5 min"

    def test_none(self):
        assert format_duration(None) == ""
        assert format_duration_long(None) == ""
