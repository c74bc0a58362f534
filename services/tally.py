"""Counts per category with percentage normalization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar

from services.numeric import percentage

T = TypeVar("T")
C = TypeVar("C", bound=Hashable)


@dataclass(slots=True, frozen=True)
class TallyEntry:
    category: str
    count: int
    percentage: int


def tally(
    items: Iterable[T],
    category_fn: Callable[[T], Optional[C]],
    universe: Sequence[C],
) -> List[TallyEntry]:
    """Count ``items`` per category of ``universe``.

    Every category is emitted, empty ones with a zero count. Percentages are
    rounded independently, so they may not add up to exactly 100.
    """
    counts: Dict[C, int] = {category: 0 for category in universe}
    for item in items:
        category = category_fn(item)
        if category in counts:
            counts[category] += 1

    total = sum(counts.values())
    return [
        TallyEntry(
            category=_category_name(category),
            count=count,
            percentage=percentage(count, total),
        )
        for category, count in counts.items()
    ]


def sort_by_count(entries: Iterable[TallyEntry]) -> List[TallyEntry]:
    return sorted(entries, key=lambda entry: entry.count, reverse=True)


def _category_name(category: Hashable) -> str:
    value = getattr(category, "value", category)
    return str(value)
