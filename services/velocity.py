"""Straight-line completion projection for fumigation cycles."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.numeric import safe_ratio
from services.temporal import days_between

ON_TRACK_TOLERANCE = 0.95


@dataclass(slots=True, frozen=True)
class CycleVelocity:
    """Progress of a cycle measured against its calendar window."""

    total_units: int
    completed_units: int
    pending_units: int
    completion_rate: float
    elapsed_days: int
    total_days: int
    remaining_days: int
    observed_rate: float
    projected_total: float
    required_rate: Optional[float]
    on_track: bool


def project_velocity(
    start: datetime,
    end: datetime,
    total_units: int,
    completed_units: int,
    now: datetime,
) -> CycleVelocity:
    elapsed_days = max(1, days_between(start, now))
    total_days = days_between(start, end)
    remaining_days = max(0, days_between(now, end))

    pending_units = total_units - completed_units
    observed_rate = completed_units / elapsed_days
    projected_total = observed_rate * total_days
    required_rate = safe_ratio(pending_units, remaining_days)
    completion = safe_ratio(completed_units, total_units)

    return CycleVelocity(
        total_units=total_units,
        completed_units=completed_units,
        pending_units=pending_units,
        completion_rate=completion * 100 if completion is not None else 0.0,
        elapsed_days=elapsed_days,
        total_days=total_days,
        remaining_days=remaining_days,
        observed_rate=observed_rate,
        projected_total=projected_total,
        required_rate=required_rate,
        on_track=projected_total >= total_units * ON_TRACK_TOLERANCE,
    )
