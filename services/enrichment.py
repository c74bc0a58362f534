"""Join entities to their most recent events."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar

from models.records import Inspection, Station
from services.numeric import round_half_up
from services.temporal import SECONDS_PER_DAY

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def latest_by_key(
    events: Iterable[T],
    key_fn: Callable[[T], K],
    time_fn: Callable[[T], Optional[datetime]],
) -> Dict[K, T]:
    """Map every key to its event with the greatest timestamp.

    On equal timestamps the event seen later in ``events`` replaces the
    earlier one. Events without a timestamp never win.
    """
    latest: Dict[K, T] = {}
    latest_times: Dict[K, datetime] = {}

    for event in events:
        timestamp = time_fn(event)
        if timestamp is None:
            continue
        key = key_fn(event)
        current = latest_times.get(key)
        if current is None or timestamp >= current:
            latest[key] = event
            latest_times[key] = timestamp

    return latest


def group_by(events: Iterable[T], key_fn: Callable[[T], K]) -> Dict[K, List[T]]:
    groups: Dict[K, List[T]] = {}
    for event in events:
        groups.setdefault(key_fn(event), []).append(event)
    return groups


def average_interval_days(timestamps: Sequence[datetime]) -> Optional[int]:
    """Average spacing in days between the first and last of ``timestamps``.

    Returns ``None`` when fewer than two timestamps are available since no
    interval exists.
    """
    if len(timestamps) <= 1:
        return None
    ordered = sorted(timestamps)
    span_seconds = (ordered[-1] - ordered[0]).total_seconds()
    return round_half_up(span_seconds / SECONDS_PER_DAY / (len(ordered) - 1))


def latest_inspections(inspections: Iterable[Inspection]) -> Dict[int, Inspection]:
    return latest_by_key(
        inspections,
        key_fn=lambda inspection: inspection.station_id,
        time_fn=lambda inspection: inspection.inspected_at,
    )


def attach_last_inspections(
    stations: Iterable[Station], inspections: Iterable[Inspection]
) -> List[Station]:
    """Return copies of ``stations`` carrying their most recent inspection."""
    latest = latest_inspections(inspections)
    return [
        replace(station, last_inspection=latest.get(station.id))
        for station in stations
    ]
