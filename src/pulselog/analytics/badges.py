"""Labeled statistics and period-over-period comparison badges.

Every metric family reports a list of :class:`StatItem`; count and
average items carry a :class:`Badge` comparing this period to the one
before.  The badge rule is the same everywhere, only ``lower_is_better``
changes (fewer episodes is good, more sleep is good).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pulselog.timeutil import round_half_up


class BadgeColor(str, Enum):
    GOOD = "good"
    BAD = "bad"
    NEUTRAL = "neutral"


class BadgeDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"
    NEW = "new"


ARROWS = {BadgeDirection.UP: "▲", BadgeDirection.DOWN: "▼"}


@dataclass(frozen=True)
class Badge:
    """Small comparison indicator shown next to a stat."""

    text: str
    direction: BadgeDirection
    color: BadgeColor
    percent: int | None = None  # signed % change; None for "New"

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "direction": self.direction.value,
            "color": self.color.value,
            "percent": self.percent,
        }


def comparison_badge(
    current: float,
    previous: float,
    lower_is_better: bool = False,
) -> Badge | None:
    """Compare a period value against the previous period.

    Returns:
        ``None`` when both are zero, a "New" badge when only the previous
        value is zero, otherwise the rounded % change with an arrow.
    """
    if previous == 0 and current == 0:
        return None
    if previous == 0:
        return Badge("New", BadgeDirection.NEW, BadgeColor.NEUTRAL)

    change = round_half_up((current - previous) / previous * 100)
    if change == 0:
        return Badge("0%", BadgeDirection.FLAT, BadgeColor.NEUTRAL, 0)

    direction = BadgeDirection.UP if change > 0 else BadgeDirection.DOWN
    is_good = change < 0 if lower_is_better else change > 0
    return Badge(
        f"{ARROWS[direction]} {abs(change)}%",
        direction,
        BadgeColor.GOOD if is_good else BadgeColor.BAD,
        change,
    )


@dataclass
class StatItem:
    """One labeled value for the presentation layer."""

    label: str
    value: Any
    unit: str | None = None
    badge: Badge | None = None
    category: str | None = None  # e.g. a BP category label for the value

    @property
    def badge_color(self) -> BadgeColor | None:
        return self.badge.color if self.badge is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "value": self.value,
            "unit": self.unit,
            "badge": self.badge.text if self.badge else None,
            "badgeColor": self.badge.color.value if self.badge else None,
            "category": self.category,
        }

    def __repr__(self) -> str:
        unit = f" {self.unit}" if self.unit else ""
        badge = f" [{self.badge.text}]" if self.badge else ""
        return f"StatItem({self.label}: {self.value}{unit}{badge})"


def compared(
    label: str,
    current: float,
    previous: float,
    lower_is_better: bool = False,
    unit: str | None = None,
    value: Any = None,
) -> StatItem:
    """Build a stat whose badge compares *current* with *previous*.

    *value* overrides what is displayed (e.g. a formatted duration) while
    the badge is still computed from the raw numbers.
    """
    return StatItem(
        label=label,
        value=current if value is None else value,
        unit=unit,
        badge=comparison_badge(current, previous, lower_is_better),
    )
