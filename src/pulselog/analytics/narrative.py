"""Per-episode insight cards.

Thin glue: each closed arrhythmia episode is annotated with the context
classifiers at its start, its linked symptom logs, the sleep that
preceded it, the readings taken while it lasted and the trigger factors
that fired for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Iterable, Sequence

from pulselog.analytics.context import ReadingContext, context_at
from pulselog.analytics.streams import Streams
from pulselog.analytics.triggers import (
    FACTOR_BY_KEY,
    HORIZON_DAYS,
    FactorContext,
    build_factor_context,
    episode_factors,
    horizon,
    prior_sleep,
    split_days,
)
from pulselog.config import UserSettings
from pulselog.models import (
    ArrhythmiaEvent,
    MedicationDefinition,
    ReadingEvent,
    SymptomEvent,
)
from pulselog.timeutil import format_duration_long, to_local


def link_symptoms(
    episode: ArrhythmiaEvent,
    symptom_events: Iterable[SymptomEvent],
) -> list[SymptomEvent]:
    """Symptom logs attached to *episode*.

    A log carrying an ``episode_id`` links by id only.  Older logs without
    one fall back to matching ``afib_start_time`` against the episode's
    start, so editing that start orphans them.
    """
    linked = []
    for s in symptom_events:
        if s.episode_id is not None:
            if s.episode_id == episode.id:
                linked.append(s)
        elif s.afib_start_time is not None and s.afib_start_time == episode.start_time:
            linked.append(s)
    return linked


@dataclass
class EpisodeCard:
    episode: ArrhythmiaEvent
    local_start: datetime
    duration_label: str
    onset_tags: list[str] = field(default_factory=list)
    onset_notes: str = ""
    symptoms: list[str] = field(default_factory=list)
    context: ReadingContext | None = None
    prior_sleep_min: int | None = None
    readings: list[ReadingEvent] = field(default_factory=list)
    factors: list[str] = field(default_factory=list)

    @property
    def factor_labels(self) -> list[str]:
        return [FACTOR_BY_KEY[k].label for k in self.factors if k in FACTOR_BY_KEY]

    def headline(self) -> str:
        """One-line description, e.g. ``45 min episode on Mon 03 Mar at 14:10``."""
        text = f"{self.duration_label} episode on {self.local_start:%a %d %b} at {self.local_start:%H:%M}"
        labels = self.factor_labels
        if labels:
            text += " · " + ", ".join(labels[:2])
            if len(labels) > 2:
                text += f" +{len(labels) - 2}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.episode.id,
            "start": self.episode.start_time.isoformat(),
            "end": self.episode.end_time.isoformat() if self.episode.end_time else None,
            "durationMin": self.episode.duration_min,
            "headline": self.headline(),
            "onsetContext": self.onset_tags,
            "onsetNotes": self.onset_notes,
            "symptoms": self.symptoms,
            "context": self.context.labels() if self.context else [],
            "priorSleepMin": self.prior_sleep_min,
            "readings": [
                {"time": r.timestamp.isoformat(), "systolic": r.systolic,
                 "diastolic": r.diastolic, "heartRate": r.heart_rate}
                for r in self.readings
            ],
            "factors": self.factor_labels,
        }


def build_card(
    episode: ArrhythmiaEvent,
    streams: Streams,
    factor_ctx: FactorContext,
    tz: tzinfo | None = None,
) -> EpisodeCard:
    start = episode.start_time
    symptoms: set[str] = set()
    for s in link_symptoms(episode, streams.symptoms):
        symptoms |= s.symptoms
    sleep = prior_sleep(episode, streams, tz)
    return EpisodeCard(
        episode=episode,
        local_start=to_local(start, tz),
        duration_label=format_duration_long(episode.duration_min),
        onset_tags=sorted(episode.onset_context),
        onset_notes=episode.onset_notes,
        symptoms=sorted(symptoms),
        context=context_at(start, streams.medication, streams.walks, streams.food, streams.drinks, tz),
        prior_sleep_min=sleep.duration_min if sleep is not None else None,
        readings=[r for r in streams.readings if start <= r.timestamp <= episode.end_time],
        factors=episode_factors(episode, factor_ctx),
    )


def build_episode_cards(
    streams: Streams,
    definitions: Sequence[MedicationDefinition],
    settings: UserSettings,
    now: datetime,
    tz: tzinfo | None = None,
    limit: int | None = None,
    horizon_days: int = HORIZON_DAYS,
) -> list[EpisodeCard]:
    """Cards for closed episodes, newest first."""
    episodes = sorted(streams.episodes, key=lambda e: e.start_time, reverse=True)
    if limit is not None:
        episodes = episodes[:limit]
    if not episodes:
        return []
    _, non_episode_days = split_days(streams.arrhythmia, horizon(now, tz, horizon_days), tz)
    factor_ctx = build_factor_context(streams, definitions, settings, non_episode_days, tz)
    return [build_card(e, streams, factor_ctx, tz) for e in episodes]
