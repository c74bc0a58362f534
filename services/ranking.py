"""Top-N / bottom-N rankings over enriched entities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")


class RankDirection(str, Enum):
    most = "most"
    least = "least"


@dataclass(slots=True, frozen=True)
class RankedEntry:
    label: str
    metric: float


def rank(
    entities: Iterable[T],
    metric_fn: Callable[[T], float],
    direction: RankDirection,
    limit: int,
    label_fn: Callable[[T], str] = str,
) -> List[RankedEntry]:
    """Rank entities by a positive metric.

    Entities whose metric is zero (or negative) are left out of both the
    "most" and "least" lists. Equal metrics keep their input order.
    """
    scored = [(entity, metric_fn(entity)) for entity in entities]
    scored = [(entity, metric) for entity, metric in scored if metric > 0]
    scored.sort(key=lambda pair: pair[1], reverse=direction is RankDirection.most)
    return [
        RankedEntry(label=label_fn(entity), metric=metric)
        for entity, metric in scored[: max(limit, 0)]
    ]
