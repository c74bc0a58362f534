"""Unit tests for the aggregation logic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from models.records import (
    CycleStatus,
    FumigationCycle,
    GeoPoint,
    Inspection,
    PhysicalCondition,
    RoomFumigation,
    RoomStatus,
    ServiceType,
    Snapshot,
    Station,
    StationType,
)
from services.aggregator import Aggregator, ReportThresholds
from services.enrichment import attach_last_inspections
from services.geo import GPSIssue
from services.temporal import InspectionPeriod, Staleness

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
ANCHOR = GeoPoint(latitude=21.0, longitude=-86.8)


def _days_ago(days: int) -> datetime:
    return NOW - timedelta(days=days)


def _stations() -> list[Station]:
    return [
        Station(id=1, code="E-1", type=StationType.rodent, location=ANCHOR),
        Station(id=2, code="E-2", type=StationType.rodent, location=ANCHOR),
        Station(id=3, code="UV-1", type=StationType.uv_trap),
    ]


def _inspections() -> list[Inspection]:
    return [
        Inspection(
            id=11,
            station_id=1,
            inspected_at=_days_ago(40),
            condition=PhysicalCondition.good,
            bait_consumed=True,
            location=ANCHOR,
        ),
        Inspection(
            id=12,
            station_id=1,
            inspected_at=_days_ago(10),
            condition=PhysicalCondition.fair,
            bait_consumed=True,
            droppings_present=True,
            location=GeoPoint(latitude=21.001, longitude=-86.8),
            inspector_name="Carlos",
        ),
        Inspection(
            id=21,
            station_id=2,
            inspected_at=_days_ago(35),
            condition=PhysicalCondition.poor,
            location_correct=False,
        ),
    ]


def _cycles() -> list[FumigationCycle]:
    return [
        FumigationCycle(
            id=7,
            label="March",
            period_start=datetime(2024, 3, 1, tzinfo=timezone.utc),
            period_end=datetime(2024, 3, 31, tzinfo=timezone.utc),
            status=CycleStatus.open,
            total_rooms=4,
            completed_rooms=2,
            pending_rooms=2,
        ),
        FumigationCycle(
            id=8,
            label="January",
            period_start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            period_end=datetime(2024, 1, 31, tzinfo=timezone.utc),
            status=CycleStatus.closed,
            total_rooms=10,
            completed_rooms=10,
        ),
    ]


def _rooms() -> list[RoomFumigation]:
    return [
        RoomFumigation(
            id=1,
            cycle_id=7,
            room_number="101",
            status=RoomStatus.done,
            fumigated_at=datetime(2024, 3, 5, tzinfo=timezone.utc),
            service_type=ServiceType.gel,
            operator_name="Ana",
        ),
        RoomFumigation(
            id=2,
            cycle_id=7,
            room_number="102",
            status=RoomStatus.done,
            fumigated_at=datetime(2024, 3, 10, tzinfo=timezone.utc),
            service_type=ServiceType.spray,
            operator_name="ana ",
        ),
        RoomFumigation(id=3, cycle_id=7, room_number="103", status=RoomStatus.pending),
        RoomFumigation(
            id=4,
            cycle_id=8,
            room_number="104",
            status=RoomStatus.done,
            fumigated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            service_type=ServiceType.gel,
            operator_name="Luis",
        ),
    ]


def _snapshot() -> Snapshot:
    return Snapshot(
        stations=_stations(),
        inspections=_inspections(),
        cycles=_cycles(),
        rooms=_rooms(),
    )


def test_station_analysis_counts_and_rankings() -> None:
    analysis = Aggregator().station_analysis(_stations(), _inspections(), NOW)

    assert analysis.total_stations == 3
    assert analysis.active_stations == 3
    assert analysis.total_inspections == 3
    assert analysis.average_inspections_per_station == 1.0
    assert analysis.total_consumption == 2
    assert analysis.total_activity == 1
    assert [(e.label, e.metric) for e in analysis.most_inspected] == [("E-1", 2), ("E-2", 1)]
    assert [e.label for e in analysis.least_inspected] == ["E-2", "E-1"]
    assert [e.label for e in analysis.most_displaced] == ["E-2"]
    assert "UV-1" not in [e.label for e in analysis.least_inspected]


def test_station_analysis_alerts() -> None:
    analysis = Aggregator().station_analysis(_stations(), _inspections(), NOW)

    assert [e.label for e in analysis.never_inspected.entries] == ["UV-1"]
    assert [(e.label, e.days) for e in analysis.overdue.entries] == [("E-2", 35)]
    assert [e.label for e in analysis.poor_condition.entries] == ["E-2"]


def test_station_stats_per_station() -> None:
    analysis = Aggregator().station_analysis(_stations(), _inspections(), NOW)
    stats = {row.label: row for row in analysis.stats}

    assert stats["E-1"].inspection_count == 2
    assert stats["E-1"].days_since_last == 10
    assert stats["E-1"].average_interval_days == 30
    assert stats["E-1"].average_condition is PhysicalCondition.good
    assert stats["E-2"].average_interval_days is None
    assert stats["UV-1"].last_inspected is None


def test_station_analysis_gps_issues_newest_first() -> None:
    analysis = Aggregator().station_analysis(_stations(), _inspections(), NOW)

    assert [(flag.inspection.id, flag.issue) for flag in analysis.gps_issues] == [
        (12, GPSIssue.too_far),
        (21, GPSIssue.missing_gps),
    ]


def test_configurable_station_overdue_threshold() -> None:
    aggregator = Aggregator(ReportThresholds(station_overdue_days=5))

    analysis = aggregator.station_analysis(_stations(), _inspections(), NOW)

    assert [e.label for e in analysis.overdue.entries] == ["E-2", "E-1"]


def test_room_analysis() -> None:
    analysis = Aggregator().room_analysis(_rooms(), NOW)

    assert analysis.total_unique_rooms == 4
    assert analysis.average_fumigations_per_room == 0.8
    assert [e.label for e in analysis.never_fumigated.entries] == ["103"]
    assert [(e.label, e.days) for e in analysis.overdue.entries] == [("104", 74)]


def test_cycle_overview_averages_completion() -> None:
    overview = Aggregator().cycle_overview(_cycles())

    assert overview.total_cycles == 2
    assert overview.open_cycles == 1
    assert overview.closed_cycles == 1
    assert overview.total_rooms == 14
    assert overview.completed_rooms == 12
    assert overview.average_completion == 75


def test_cycle_overview_empty() -> None:
    overview = Aggregator().cycle_overview([])

    assert overview.total_cycles == 0
    assert overview.average_completion == 0


def test_cycle_velocity_for_cycle() -> None:
    velocity = Aggregator().cycle_velocity(_cycles()[0], _rooms(), NOW)

    assert velocity is not None
    assert velocity.total_units == 4
    assert velocity.completed_units == 2
    assert velocity.elapsed_days == 15
    assert velocity.total_days == 30
    assert velocity.projected_total == pytest.approx(4.0)
    assert velocity.on_track is True


def test_cycle_velocity_without_cycle_needs_created_at() -> None:
    assert Aggregator().cycle_velocity(None, _rooms(), NOW) is None


def test_service_distribution_counts_done_rooms_only() -> None:
    entries = Aggregator().service_distribution(_rooms())

    assert [(e.category, e.count, e.percentage) for e in entries[:2]] == [
        ("GEL", 2, 67),
        ("SPRAY", 1, 33),
    ]
    assert len(entries) == len(ServiceType)


def test_operator_ranking_merges_names_case_insensitively() -> None:
    operators = Aggregator().operator_ranking(_rooms(), _inspections())

    assert [(op.name, op.fumigations, op.inspections) for op in operators] == [
        ("Ana", 2, 0),
        ("Luis", 1, 0),
        ("Carlos", 0, 1),
    ]
    assert Aggregator().operator_ranking(_rooms(), _inspections(), limit=1)[0].name == "Ana"


def test_station_snapshot_uses_latest_inspection() -> None:
    snapshot = Aggregator().station_snapshot(_stations(), _inspections())
    by_condition = {e.category: e.count for e in snapshot.by_condition}
    by_type = {e.category: e.percentage for e in snapshot.by_type}

    assert snapshot.total_stations == 3
    assert snapshot.inspected_stations == 2
    assert by_condition == {"GOOD": 0, "FAIR": 1, "POOR": 1}
    assert by_type == {"RODENT": 67, "UV_TRAP": 33, "OTHER": 0}
    assert snapshot.with_bait == 1
    assert snapshot.without_bait == 1
    assert snapshot.bait_replaced == 1
    assert snapshot.coverage == 67


def test_staleness_listing_orders_stale_first_and_never_last() -> None:
    stations = attach_last_inspections(_stations(), _inspections())
    stations.append(Station(id=4, code="E-4", type=StationType.rodent, active=False))

    rows = Aggregator().staleness_listing(stations, NOW)

    assert [(row.station.code, row.days_since, row.staleness) for row in rows] == [
        ("E-2", 35, Staleness.overdue),
        ("E-1", 10, Staleness.current),
        ("UV-1", None, Staleness.never),
    ]
    assert not any(row.critical for row in rows)


def test_staleness_listing_flags_critical_and_filters_type() -> None:
    old = Inspection(
        id=99, station_id=2, inspected_at=_days_ago(46), condition=PhysicalCondition.good
    )
    stations = attach_last_inspections(_stations(), [old])

    rows = Aggregator().staleness_listing(stations, NOW, station_type=StationType.rodent)

    assert [row.station.code for row in rows] == ["E-2", "E-1"]
    assert rows[0].critical is True


def test_station_history() -> None:
    history = Aggregator().station_history(_stations()[0], _inspections(), NOW)

    assert history.inspection_count == 2
    assert history.last_inspection.id == 12
    assert history.days_since == 10
    assert history.staleness is Staleness.current
    assert history.average_interval_days == 30


def test_executive_report_for_cycle() -> None:
    report = Aggregator().executive_report(
        _snapshot(), NOW, cycle_id=7, period=InspectionPeriod.last_30
    )

    assert report.cycle_id == 7
    assert report.velocity is not None
    assert report.velocity.total_units == 4
    assert report.rooms.total_unique_rooms == 3
    assert report.rooms.average_fumigations_per_room == 0.7
    assert report.stations.total_inspections == 1
    assert report.cycle_overview.total_cycles == 2
    assert [op.name for op in report.operators] == ["Ana", "Carlos"]


def test_executive_report_unknown_cycle() -> None:
    with pytest.raises(KeyError):
        Aggregator().executive_report(_snapshot(), NOW, cycle_id=404)


def test_executive_report_is_idempotent() -> None:
    aggregator = Aggregator()

    first = aggregator.executive_report(_snapshot(), NOW, period=InspectionPeriod.all)
    second = aggregator.executive_report(_snapshot(), NOW, period=InspectionPeriod.all)

    assert first == second
