"""Partition entities into never-seen, overdue and poor-condition alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Hashable, Iterable, List, Mapping, Optional, TypeVar

from models.records import PhysicalCondition

T = TypeVar("T")

STATION_OVERDUE_DAYS = 30
ROOM_OVERDUE_DAYS = 60

POOR_SCORE_CUTOFF = 1.5
FAIR_SCORE_CUTOFF = 2.5


class AlertKind(str, Enum):
    never = "NEVER"
    overdue = "OVERDUE"
    poor_condition = "POOR_CONDITION"


@dataclass(slots=True, frozen=True)
class AlertEntry:
    label: str
    days: Optional[int] = None
    condition: Optional[PhysicalCondition] = None


@dataclass(slots=True)
class AlertBucket:
    kind: AlertKind
    entries: List[AlertEntry] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.entries)


def never_occurred(
    entities: Iterable[T],
    key_fn: Callable[[T], Hashable],
    latest: Mapping[Hashable, object],
    label_fn: Callable[[T], str] = str,
) -> AlertBucket:
    entries = [
        AlertEntry(label=label_fn(entity))
        for entity in entities
        if key_fn(entity) not in latest
    ]
    return AlertBucket(kind=AlertKind.never, entries=entries)


def overdue(
    entities: Iterable[T],
    days_fn: Callable[[T], Optional[int]],
    threshold_days: int,
    limit: int,
    label_fn: Callable[[T], str] = str,
) -> AlertBucket:
    """Entities whose days since last event exceed ``threshold_days``, most overdue first."""
    late = [
        (entity, days)
        for entity, days in ((entity, days_fn(entity)) for entity in entities)
        if days is not None and days > threshold_days
    ]
    late.sort(key=lambda pair: pair[1], reverse=True)
    entries = [
        AlertEntry(label=label_fn(entity), days=days)
        for entity, days in late[: max(limit, 0)]
    ]
    return AlertBucket(kind=AlertKind.overdue, entries=entries)


def average_condition(
    conditions: Iterable[PhysicalCondition],
) -> Optional[PhysicalCondition]:
    scores = [condition.score for condition in conditions]
    if not scores:
        return None
    average = sum(scores) / len(scores)
    if average < POOR_SCORE_CUTOFF:
        return PhysicalCondition.poor
    if average < FAIR_SCORE_CUTOFF:
        return PhysicalCondition.fair
    return PhysicalCondition.good


def poor_condition(
    entities: Iterable[T],
    condition_fn: Callable[[T], Optional[PhysicalCondition]],
    label_fn: Callable[[T], str] = str,
) -> AlertBucket:
    entries = [
        AlertEntry(label=label_fn(entity), condition=PhysicalCondition.poor)
        for entity in entities
        if condition_fn(entity) is PhysicalCondition.poor
    ]
    return AlertBucket(kind=AlertKind.poor_condition, entries=entries)
