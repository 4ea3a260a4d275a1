"""Convert stored JSON records to and from typed events.

Records use snake_case keys.  Exports from the legacy web app use
camelCase keys and different type names (``afib``, ``bp_hr``,
``ventolin``, ``afib_symptom``); those are accepted as aliases so an old
export can be loaded as-is.

Parsing is strict: a record that cannot be turned into a well-formed
event raises :class:`EventParseError`.  It is the store's job to decide
what to do with it (it skips and logs).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pulselog.config import UserSettings
from pulselog.errors import EventParseError, InvalidIntervalError, InvalidReadingError
from pulselog.models import (
    EVENT_CLASSES,
    ArrhythmiaEvent,
    DrinkEvent,
    Event,
    EventType,
    FoodEvent,
    InhalerEvent,
    IntervalEvent,
    MedicationDefinition,
    MedicationEvent,
    MedStatus,
    ReadingEvent,
    Schedule,
    StepsEvent,
    StressEvent,
    SymptomEvent,
    TimeOfDay,
    WeightEvent,
)
from pulselog.timeutil import parse_timestamp

# Legacy type names → EventType
TYPE_ALIASES = {
    "afib": EventType.ARRHYTHMIA,
    "bp_hr": EventType.READING,
    "bp": EventType.READING,
    "ventolin": EventType.INHALER,
    "afib_symptom": EventType.SYMPTOM,
}

# camelCase → snake_case field aliases
KEY_ALIASES = {
    "eventType": "event_type",
    "startTime": "start_time",
    "endTime": "end_time",
    "heartRate": "heart_rate",
    "isDuringAFib": "is_during_arrhythmia",
    "isDuringArrhythmia": "is_during_arrhythmia",
    "lastEdited": "last_edited",
    "onsetContext": "onset_context",
    "onsetNotes": "onset_notes",
    "afibStartTime": "afib_start_time",
    "episodeId": "episode_id",
    "medName": "med_name",
    "timeOfDay": "time_of_day",
    "afibRelevant": "afib_relevant",
    "userHeight": "user_height_cm",
    "goalWeight": "goal_weight_kg",
    "drinksAlcohol": "drinks_alcohol",
    "proteinPerKg": "protein_per_kg",
    "steps": "step_count",
    "stressLevel": "level",
}

_TIME_FIELDS = ("timestamp", "start_time", "end_time", "last_edited", "afib_start_time")

_NUMERIC_FIELDS: dict[type[Event], tuple[str, ...]] = {
    FoodEvent: ("calories", "protein_g", "carbs_g", "fat_g", "sodium_mg", "caffeine_mg"),
    DrinkEvent: ("calories", "protein_g", "carbs_g", "fat_g", "sodium_mg", "caffeine_mg",
                 "volume_ml", "alcohol_units"),
    WeightEvent: ("weight_kg",),
}

_INT_FIELDS: dict[type[Event], tuple[str, ...]] = {
    ReadingEvent: ("systolic", "diastolic", "heart_rate"),
    StepsEvent: ("step_count",),
    StressEvent: ("level",),
}


def _normalize_keys(record: dict[str, Any]) -> dict[str, Any]:
    return {KEY_ALIASES.get(k, k): v for k, v in record.items()}


def _event_type(raw: Any, record_id: str | None) -> EventType:
    if isinstance(raw, EventType):
        return raw
    if not isinstance(raw, str):
        raise EventParseError(f"missing event type: {raw!r}", record_id)
    if raw in TYPE_ALIASES:
        return TYPE_ALIASES[raw]
    try:
        return EventType(raw)
    except ValueError:
        raise EventParseError(f"unknown event type: {raw!r}", record_id) from None


def _time(value: Any, name: str, record_id: str | None) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise EventParseError(f"bad {name}: {value!r}", record_id) from None


def _number(value: Any, name: str, record_id: str | None, as_int: bool = False):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise EventParseError(f"bad {name}: {value!r}", record_id)
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise EventParseError(f"bad {name}: {value!r}", record_id) from None
    return int(round(num)) if as_int else num


def _tags(value: Any, name: str, record_id: str | None) -> frozenset[str]:
    if value is None or value == "":
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(v) for v in value)
    raise EventParseError(f"bad {name}: {value!r}", record_id)


def parse_event(record: dict[str, Any]) -> Event:
    """Build a typed event from a stored record.

    Raises:
        EventParseError: If the record is malformed.
    """
    data = _normalize_keys(record)
    record_id = data.get("id")
    if record_id is None:
        raise EventParseError("record has no id")
    record_id = str(record_id)
    etype = _event_type(data.get("event_type"), record_id)
    cls = EVENT_CLASSES[etype]

    times = {f: _time(data.get(f), f, record_id) for f in _TIME_FIELDS}
    timestamp = times["timestamp"] or times["start_time"]
    if timestamp is None:
        raise EventParseError("record has no timestamp", record_id)

    kwargs: dict[str, Any] = {
        "id": record_id,
        "timestamp": timestamp,
        "notes": data.get("notes") or "",
        "is_during_arrhythmia": bool(data.get("is_during_arrhythmia", False)),
        "last_edited": times["last_edited"],
    }

    if issubclass(cls, IntervalEvent):
        kwargs["start_time"] = times["start_time"] or timestamp
        kwargs["end_time"] = times["end_time"]
    if cls is ArrhythmiaEvent:
        kwargs["onset_context"] = _tags(data.get("onset_context"), "onset_context", record_id)
        kwargs["onset_notes"] = data.get("onset_notes") or ""
    for name in _NUMERIC_FIELDS.get(cls, ()):
        value = _number(data.get(name), name, record_id)
        if value is not None:
            kwargs[name] = value
    for name in _INT_FIELDS.get(cls, ()):
        value = _number(data.get(name), name, record_id, as_int=True)
        if value is not None:
            kwargs[name] = value
    if cls is ReadingEvent:
        # Zero means "not entered" on the web app entry form
        for name in ("systolic", "diastolic", "heart_rate"):
            if kwargs.get(name) == 0:
                kwargs[name] = None
    if cls in (FoodEvent, DrinkEvent):
        kwargs["name"] = data.get("name") or ""
    if cls is MedicationEvent:
        kwargs["med_name"] = data.get("med_name") or ""
        kwargs["dosage"] = data.get("dosage") or ""
        try:
            kwargs["status"] = MedStatus(data.get("status", MedStatus.TAKEN.value))
            kwargs["time_of_day"] = TimeOfDay(data.get("time_of_day", TimeOfDay.AM.value))
        except ValueError as e:
            raise EventParseError(str(e), record_id) from None
    if cls is InhalerEvent:
        ctx = data.get("context")
        kwargs["context"] = ", ".join(ctx) if isinstance(ctx, list) else (ctx or "")
    if cls is SymptomEvent:
        kwargs["symptoms"] = _tags(data.get("symptoms"), "symptoms", record_id)
        kwargs["context"] = _tags(data.get("context"), "context", record_id)
        kwargs["afib_start_time"] = times["afib_start_time"]
        episode_id = data.get("episode_id")
        kwargs["episode_id"] = str(episode_id) if episode_id is not None else None

    try:
        return cls(**kwargs)
    except (InvalidIntervalError, InvalidReadingError) as e:
        raise EventParseError(str(e), record_id) from e


def event_to_dict(event: Event) -> dict[str, Any]:
    """Serialize an event to a JSON-friendly snake_case dict."""
    out: dict[str, Any] = {"event_type": event.event_type.value}
    for name, value in vars(event).items():
        if isinstance(value, datetime):
            out[name] = value.isoformat()
        elif isinstance(value, frozenset):
            out[name] = sorted(value)
        elif isinstance(value, (MedStatus, TimeOfDay)):
            out[name] = value.value
        else:
            out[name] = value
    return out


def parse_definition(record: dict[str, Any]) -> MedicationDefinition:
    """Build a medication definition from a stored record."""
    data = _normalize_keys(record)
    name = data.get("name")
    if not name:
        raise EventParseError("medication definition has no name", data.get("id"))
    try:
        schedule = Schedule(data.get("schedule", Schedule.MORNING.value))
    except ValueError:
        raise EventParseError(f"bad schedule: {data.get('schedule')!r}", data.get("id")) from None
    return MedicationDefinition(
        name=name,
        dosage=data.get("dosage") or "",
        schedule=schedule,
        afib_relevant=bool(data.get("afib_relevant", False)),
        id=str(data["id"]) if data.get("id") is not None else None,
    )


def definition_to_dict(definition: MedicationDefinition) -> dict[str, Any]:
    return {
        "id": definition.id,
        "name": definition.name,
        "dosage": definition.dosage,
        "schedule": definition.schedule.value,
        "afib_relevant": definition.afib_relevant,
    }


def parse_settings(record: dict[str, Any] | list[dict[str, Any]] | None) -> UserSettings:
    """Build user settings; blank strings count as unset.

    App exports store settings as a list of ``{"key": ..., "value": ...}``
    rows; a plain mapping is accepted too.
    """
    if isinstance(record, list):
        record = {row["key"]: row.get("value") for row in record if isinstance(row, dict) and "key" in row}
    data = _normalize_keys(record or {})
    fields = {k: v for k, v in data.items() if k in UserSettings.model_fields and v not in ("", None)}
    if isinstance(fields.get("drinks_alcohol"), str):
        fields["drinks_alcohol"] = fields["drinks_alcohol"].strip().lower() in {"yes", "true", "1", "on"}
    return UserSettings(**fields)
