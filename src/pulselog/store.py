"""Event store interface and a JSON-backed in-memory implementation.

The analytics engine never talks to storage itself: callers pull what
they need through :class:`EventStore` into plain lists first (see
:func:`pulselog.analytics.pipeline.load_snapshot`).  :class:`MemoryEventStore`
is the implementation used by the CLI and the tests; it loads a journal
export written by the app.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

import structlog
from pydantic import ValidationError

from pulselog.codec import (
    definition_to_dict,
    event_to_dict,
    parse_definition,
    parse_event,
    parse_settings,
)
from pulselog.config import UserSettings
from pulselog.errors import ConfigError, EventParseError
from pulselog.models import (
    ArrhythmiaEvent,
    Event,
    EventType,
    IntervalEvent,
    MedicationDefinition,
    SymptomEvent,
    close_interval,
    edit_event,
)

logger = structlog.get_logger(__name__)


class EventStore(Protocol):
    """What the engine needs from persistent storage."""

    def fetch_by_type(self, event_type: EventType, limit: int = 100) -> list[Event]:
        """Events of one type, newest first, at most *limit*."""
        ...

    def fetch_by_types(self, event_types: Iterable[EventType], limit: int = 200) -> list[Event]:
        """Events of any of the given types, newest first, at most *limit*."""
        ...

    def fetch_in_range(
        self,
        start: datetime,
        end: datetime,
        event_type: EventType | None = None,
    ) -> list[Event]:
        """Events with ``start <= timestamp <= end``, oldest first."""
        ...

    def settings(self) -> UserSettings:
        ...

    def list_definitions(self) -> list[MedicationDefinition]:
        ...


def _newest_first(events: Iterable[Event]) -> list[Event]:
    return sorted(events, key=lambda e: e.timestamp, reverse=True)


class MemoryEventStore:
    """A single-user event store held in memory.

    Reads return new lists, so a caller holding a previous result keeps a
    stable snapshot even if the store is edited afterwards.
    """

    def __init__(
        self,
        events: Iterable[Event] = (),
        definitions: Iterable[MedicationDefinition] = (),
        settings: UserSettings | None = None,
    ) -> None:
        self._events: dict[str, Event] = {}
        for e in events:
            self._events[e.id] = e
        self._definitions = list(definitions)
        self._settings = settings or UserSettings()

    # -- EventStore ---------------------------------------------------------

    def fetch_by_type(self, event_type: EventType, limit: int = 100) -> list[Event]:
        matches = (e for e in self._events.values() if e.event_type == event_type)
        return _newest_first(matches)[:limit]

    def fetch_by_types(self, event_types: Iterable[EventType], limit: int = 200) -> list[Event]:
        wanted = set(event_types)
        matches = (e for e in self._events.values() if e.event_type in wanted)
        return _newest_first(matches)[:limit]

    def fetch_in_range(
        self,
        start: datetime,
        end: datetime,
        event_type: EventType | None = None,
    ) -> list[Event]:
        matches = [
            e for e in self._events.values()
            if start <= e.timestamp <= end
            and (event_type is None or e.event_type == event_type)
        ]
        return sorted(matches, key=lambda e: e.timestamp)

    def settings(self) -> UserSettings:
        return self._settings

    def list_definitions(self) -> list[MedicationDefinition]:
        return list(self._definitions)

    # -- mutation -----------------------------------------------------------

    def __len__(self) -> int:
        return len(self._events)

    def add(self, event: Event) -> Event:
        if event.id in self._events:
            raise KeyError(f"duplicate event id: {event.id}")
        self._events[event.id] = event
        return event

    def get(self, event_id: str) -> Event | None:
        return self._events.get(event_id)

    def update(self, event_id: str, now: datetime | None = None, **changes: Any) -> Event:
        """Edit an event in place (stamps ``last_edited``).

        Raises:
            KeyError: If no such event exists.
            InvalidIntervalError: If the edit would end an interval before it starts.
        """
        event = self._events[event_id]
        updated = edit_event(event, now=now, **changes)
        self._events[event_id] = updated
        return updated

    def delete(self, event_id: str) -> bool:
        return self._events.pop(event_id, None) is not None

    def open_interval(self, event_type: EventType) -> IntervalEvent | None:
        """The currently open interval of a type (ongoing episode, sleep, walk)."""
        for e in _newest_first(self._events.values()):
            if e.event_type == event_type and isinstance(e, IntervalEvent) and not e.is_closed:
                return e
        return None

    def close_interval(self, event_id: str, end_time: datetime) -> IntervalEvent:
        event = self._events[event_id]
        if not isinstance(event, IntervalEvent):
            raise TypeError(f"{event.event_type.value} {event_id} is not an interval event")
        closed = close_interval(event, end_time)
        self._events[event_id] = closed
        return closed

    def linked_symptoms(self, episode: ArrhythmiaEvent) -> list[SymptomEvent]:
        """Symptom logs attached to an episode (id link first, start-time link as fallback)."""
        from pulselog.analytics.narrative import link_symptoms

        symptoms = [e for e in self._events.values() if isinstance(e, SymptomEvent)]
        return link_symptoms(episode, symptoms)

    # -- persistence --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [event_to_dict(e) for e in _newest_first(self._events.values())],
            "medications": [definition_to_dict(d) for d in self._definitions],
            "settings": self._settings.model_dump(exclude_none=True),
        }

    def save(self, path: str | Path) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


def load_records(
    records: Sequence[dict[str, Any]],
) -> tuple[list[Event], int]:
    """Parse raw records, skipping (and logging) the malformed ones.

    Returns:
        The parsed events and the number of skipped records.
    """
    events: list[Event] = []
    skipped = 0
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            skipped += 1
            logger.warning("record_skipped", index=i, error="not an object")
            continue
        try:
            events.append(parse_event(record))
        except EventParseError as e:
            skipped += 1
            logger.warning("record_skipped", index=i, record_id=e.record_id, error=str(e))
    return events, skipped


def load_store(path: str | Path) -> MemoryEventStore:
    """Load a journal export into a :class:`MemoryEventStore`.

    The export is a JSON object with ``events``, ``medications`` and
    ``settings`` keys; a bare list is read as events only.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigError: If the settings block is invalid.
    """
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    if isinstance(data, list):
        data = {"events": data}

    events, skipped = load_records(data.get("events", []))

    definitions: list[MedicationDefinition] = []
    for record in data.get("medications", []):
        try:
            definitions.append(parse_definition(record))
        except EventParseError as e:
            logger.warning("definition_skipped", error=str(e))

    try:
        settings = parse_settings(data.get("settings"))
    except ValidationError as e:
        raise ConfigError(f"invalid settings in {path.name}: {e}") from e

    store = MemoryEventStore(events, definitions, settings)
    logger.info(
        "store_loaded",
        path=str(path),
        events=len(store),
        skipped=skipped,
        medications=len(definitions),
    )
    return store
