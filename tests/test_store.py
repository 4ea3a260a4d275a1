"""Tests for pulselog.store -- the in-memory event store and export loading."""

import json

import pytest

from pulselog.errors import ConfigError, InvalidIntervalError
from pulselog.models import EventType, MedStatus
from pulselog.store import MemoryEventStore, load_records, load_store

from tests.conftest import (
    NOW,
    SOTALOL,
    at,
    legacy_export,
    make_dose,
    make_episode,
    make_reading,
    make_symptom,
    write_export,
)


@pytest.fixture
def store():
    return MemoryEventStore(
        [
            make_reading(at(3, 8), 120, 80),
            make_reading(at(2, 8), 125, 82),
            make_reading(at(1, 8), 130, 85),
            make_dose(at(1, 7)),
        ],
        [SOTALOL],
    )


class TestMemoryEventStore:
    def test_fetch_by_type_newest_first(self, store):
        readings = store.fetch_by_type(EventType.READING)
        assert [r.systolic for r in readings] == [130, 125, 120]

    def test_fetch_limit(self, store):
        assert len(store.fetch_by_type(EventType.READING, limit=2)) == 2

    def test_fetch_by_types(self, store):
        events = store.fetch_by_types([EventType.READING, EventType.MEDICATION])
        assert len(events) == 4
        assert events[0].timestamp == at(1, 8)

    def test_fetch_in_range_oldest_first(self, store):
        events = store.fetch_in_range(at(2, 0), at(1, 7, 30))
        assert [e.timestamp for e in events] == [at(2, 8), at(1, 7)]

    def test_fetch_in_range_by_type(self, store):
        events = store.fetch_in_range(at(5, 0), NOW, EventType.MEDICATION)
        assert len(events) == 1

    def test_duplicate_id(self, store):
        existing = store.fetch_by_type(EventType.MEDICATION)[0]
        with pytest.raises(KeyError):
            store.add(existing)

    def test_update_stamps_edit(self, store):
        dose = store.fetch_by_type(EventType.MEDICATION)[0]
        updated = store.update(dose.id, now=NOW, status=MedStatus.SKIPPED)
        assert updated.last_edited == NOW
        assert store.get(dose.id).status == MedStatus.SKIPPED

    def test_earlier_results_are_a_stable_snapshot(self, store):
        before = store.fetch_by_type(EventType.READING)
        store.delete(before[0].id)
        assert len(before) == 3
        assert len(store.fetch_by_type(EventType.READING)) == 2

    def test_delete_missing(self, store):
        assert store.delete("nope") is False

    def test_open_and_close_interval(self, store):
        ep = store.add(make_episode(at(0, 19), minutes=None))
        assert store.open_interval(EventType.ARRHYTHMIA) is ep
        closed = store.close_interval(ep.id, at(0, 19, 25))
        assert closed.duration_min == 25
        assert store.open_interval(EventType.ARRHYTHMIA) is None

    def test_close_non_interval(self, store):
        dose = store.fetch_by_type(EventType.MEDICATION)[0]
        with pytest.raises(TypeError):
            store.close_interval(dose.id, NOW)

    def test_edit_cannot_invert_interval(self, store):
        ep = store.add(make_episode(at(1, 14), minutes=30))
        with pytest.raises(InvalidIntervalError):
            store.update(ep.id, now=NOW, end_time=at(1, 13))

    def test_linked_symptoms(self, store):
        ep = store.add(make_episode(at(1, 14), minutes=30))
        store.add(make_symptom(at(1, 14, 5), ["Palpitations"], afib_start_time=ep.start_time))
        store.add(make_symptom(at(1, 14, 10), ["Fatigue"], episode_id=ep.id))
        store.add(make_symptom(at(1, 14, 10), ["Other"], episode_id="someone-else"))
        linked = store.linked_symptoms(ep)
        assert sorted(next(iter(s.symptoms)) for s in linked) == ["Fatigue", "Palpitations"]


class TestLoadStore:
    def test_load_legacy_export(self, export_file):
        store = load_store(export_file)
        assert len(store) == 7  # one malformed record skipped
        assert store.settings().user_height_cm == 190.0
        assert [d.name for d in store.list_definitions()] == [
            "Sotalol Hydrochloride 80mg",
            "Magnesium Glycinate",
        ]

    def test_load_bare_list(self, tmp_path):
        path = write_export(tmp_path / "events.json", legacy_export()["events"][:3])
        store = load_store(path)
        assert len(store) == 3
        assert store.list_definitions() == []

    def test_invalid_settings(self, tmp_path):
        data = legacy_export()
        data["settings"] = {"userHeight": -5}
        path = write_export(tmp_path / "bad.json", data)
        with pytest.raises(ConfigError):
            load_store(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_store(tmp_path / "missing.json")

    def test_save_and_reload(self, export_file, tmp_path):
        store = load_store(export_file)
        out = tmp_path / "saved.json"
        store.save(out)
        reloaded = load_store(out)
        assert len(reloaded) == len(store)
        assert reloaded.settings() == store.settings()
        saved = json.loads(out.read_text())
        assert {"events", "medications", "settings"} <= set(saved)


class TestLoadRecords:
    def test_skips_bad_records(self):
        events, skipped = load_records(legacy_export()["events"] + ["not a dict"])
        assert len(events) == 7
        assert skipped == 2

    def test_bad_tag_value_skips_only_that_record(self):
        good = {"id": "ok", "eventType": "afib", "timestamp": "2026-03-17T04:00:00Z",
                "onsetContext": ["Resting"]}
        bad = {"id": "bad", "eventType": "afib", "timestamp": "2026-03-17T05:00:00Z",
               "onsetContext": 5}
        bad_symptom = {"id": "sym", "eventType": "afib_symptom",
                       "timestamp": "2026-03-17T05:00:00Z", "symptoms": 3}
        events, skipped = load_records([good, bad, bad_symptom])
        assert [e.id for e in events] == ["ok"]
        assert skipped == 2
