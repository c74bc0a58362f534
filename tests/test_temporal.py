from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from services.temporal import (
    InspectionPeriod,
    Staleness,
    classify_staleness,
    days_between,
    days_since,
    parse_timestamp,
    period_window,
    within_window,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def test_days_between_rounds_partial_days_up() -> None:
    start = datetime(2024, 3, 1, tzinfo=timezone.utc)

    assert days_between(start, start) == 0
    assert days_between(start, start + timedelta(hours=1)) == 1
    assert days_between(start, start + timedelta(days=2, hours=3)) == 3


def test_days_between_is_symmetric() -> None:
    a = datetime(2024, 3, 1, tzinfo=timezone.utc)
    b = datetime(2024, 3, 4, 6, tzinfo=timezone.utc)

    assert days_between(a, b) == days_between(b, a) == 4


def test_days_since_rounds_down() -> None:
    assert days_since(NOW - timedelta(hours=23), NOW) == 0
    assert days_since(NOW - timedelta(days=3, hours=20), NOW) == 3


@pytest.mark.parametrize(
    ("days", "expected"),
    [
        (0, Staleness.current),
        (15, Staleness.current),
        (16, Staleness.due_soon),
        (30, Staleness.due_soon),
        (31, Staleness.overdue),
        (None, Staleness.never),
    ],
)
def test_classify_staleness_boundaries(days, expected) -> None:
    assert classify_staleness(days) is expected


def test_parse_timestamp_handles_zulu_and_offsets() -> None:
    parsed = parse_timestamp("2024-01-01T10:00:00Z")
    offset = parse_timestamp("2024-01-01T04:00:00-06:00")

    assert parsed == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    assert offset == parsed
    assert offset.tzinfo == timezone.utc


def test_parse_timestamp_assumes_utc_for_naive_values() -> None:
    parsed = parse_timestamp("2024-01-01 08:30:00")

    assert parsed == datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["", "   ", None, "not-a-date", "2024-13-40"])
def test_parse_timestamp_rejects_malformed_values(value) -> None:
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_rolling_window_starts_at_midnight() -> None:
    start, end = period_window(InspectionPeriod.last_7, NOW)

    assert start == datetime(2024, 3, 8, tzinfo=timezone.utc)
    assert end is None


def test_last_month_window_covers_the_whole_previous_month() -> None:
    start, end = period_window(InspectionPeriod.last_month, NOW)

    assert start == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert within_window(datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc), start, end)
    assert not within_window(datetime(2024, 3, 1, tzinfo=timezone.utc), start, end)


def test_last_month_window_in_january_wraps_the_year() -> None:
    start, end = period_window(
        InspectionPeriod.last_month, datetime(2024, 1, 10, tzinfo=timezone.utc)
    )

    assert start == datetime(2023, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_current_month_and_all_windows() -> None:
    assert period_window(InspectionPeriod.current_month, NOW) == (
        datetime(2024, 3, 1, tzinfo=timezone.utc),
        None,
    )
    assert period_window(InspectionPeriod.all, NOW) == (None, None)
    assert within_window(datetime(1999, 1, 1, tzinfo=timezone.utc), None, None)


@pytest.mark.parametrize(
    "value", ["0001-01-01T00:00:00+05:00", "9999-12-31T23:59:59-05:00"]
)
def test_parse_timestamp_rejects_offsets_outside_utc_range(value) -> None:
    with pytest.raises(ValueError, match="Invalid timestamp format"):
        parse_timestamp(value)
