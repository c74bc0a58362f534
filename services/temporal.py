"""Day arithmetic, staleness buckets and report period windows."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

SECONDS_PER_DAY = 86_400

CURRENT_MAX_DAYS = 15
DUE_SOON_MAX_DAYS = 30


class Staleness(str, Enum):
    current = "CURRENT"
    due_soon = "DUE_SOON"
    overdue = "OVERDUE"
    never = "NEVER"


class InspectionPeriod(str, Enum):
    last_7 = "last_7"
    last_30 = "last_30"
    last_60 = "last_60"
    last_90 = "last_90"
    current_month = "current_month"
    last_month = "last_month"
    all = "all"


_ROLLING_PERIOD_DAYS = {
    InspectionPeriod.last_7: 7,
    InspectionPeriod.last_30: 30,
    InspectionPeriod.last_60: 60,
    InspectionPeriod.last_90: 90,
}


def _elapsed_days(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def days_between(a: datetime, b: datetime) -> int:
    """Whole days between two instants, rounding partial days up."""
    return math.ceil(abs(_elapsed_days(a, b)))


def days_since(timestamp: datetime, now: datetime) -> int:
    """Whole days elapsed from ``timestamp`` to ``now``, rounding down."""
    return math.floor(_elapsed_days(timestamp, now))


def classify_staleness(days: Optional[int]) -> Staleness:
    if days is None:
        return Staleness.never
    if days <= CURRENT_MAX_DAYS:
        return Staleness.current
    if days <= DUE_SOON_MAX_DAYS:
        return Staleness.due_soon
    return Staleness.overdue


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 value into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        candidate = str(value).strip() if value is not None else ""
        if not candidate:
            raise ValueError("Timestamp is empty.")

        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp format: {value!r}") from exc

    try:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError) as exc:
        # offsets at the calendar edges fall outside datetime's range once in UTC
        raise ValueError(f"Invalid timestamp format: {value!r}") from exc


def period_window(
    period: InspectionPeriod, now: datetime
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Return the ``[start, end)`` bounds for a report period.

    ``None`` on either side means the window is open on that side.
    """
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today.replace(day=1)

    if period in _ROLLING_PERIOD_DAYS:
        return today - timedelta(days=_ROLLING_PERIOD_DAYS[period]), None
    if period is InspectionPeriod.current_month:
        return month_start, None
    if period is InspectionPeriod.last_month:
        previous_month_end = month_start - timedelta(days=1)
        return previous_month_end.replace(day=1), month_start
    return None, None


def within_window(
    timestamp: datetime,
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp >= end:
        return False
    return True
