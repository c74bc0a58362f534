from __future__ import annotations

import logging
from datetime import datetime, timezone

from models.records import (
    CycleStatus,
    GeoPoint,
    PhysicalCondition,
    RoomStatus,
    ServiceType,
    StationType,
)
from services.loader import SnapshotLoader, load_snapshot


def _station_row(**overrides):
    row = {
        "id": 1,
        "code": "E-01",
        "name": "Lobby",
        "type": "ROEDOR",
        "utm_x": "-86.8",
        "utm_y": "21.0",
        "is_active": 1,
    }
    row.update(overrides)
    return row


def _inspection_row(**overrides):
    row = {
        "id": 10,
        "station_id": 1,
        "inspected_at": "2024-03-01T10:00:00Z",
        "physical_condition": "BUENA",
        "has_bait": 1,
        "bait_replaced": 0,
        "location_ok": 1,
        "lat": 21.0,
        "lng": -86.8,
        "inspector_nombre": "Carlos",
    }
    row.update(overrides)
    return row


def test_station_payload_is_normalized() -> None:
    loader = SnapshotLoader()

    [station] = loader.load_stations(
        [
            _station_row(
                lastInspection={
                    "id": 5,
                    "inspected_at": "2024-03-02T00:00:00Z",
                    "physical_condition": "MALA",
                }
            )
        ]
    )

    assert station.type is StationType.rodent
    assert station.active is True
    assert station.location == GeoPoint(latitude=21.0, longitude=-86.8)
    assert station.last_inspection is not None
    assert station.last_inspection.station_id == 1
    assert station.last_inspection.condition is PhysicalCondition.poor
    assert loader.anomalies == []


def test_boolean_flags_accept_integers_and_defaults() -> None:
    loader = SnapshotLoader()

    inactive = loader.load_stations([_station_row(is_active=0)])[0]
    missing_flags = loader.load_inspections(
        [_inspection_row(has_bait=None, location_ok=None, bait_replaced=True)]
    )[0]

    assert inactive.active is False
    assert missing_flags.bait_consumed is False
    assert missing_flags.location_correct is True
    assert missing_flags.droppings_present is True


def test_coordinates_require_both_axes() -> None:
    loader = SnapshotLoader()

    station = loader.load_stations([_station_row(utm_x=None)])[0]
    inspection = loader.load_inspections([_inspection_row(lng="")])[0]

    assert station.location is None
    assert inspection.location is None


def test_malformed_timestamp_is_rejected_and_flagged(caplog) -> None:
    loader = SnapshotLoader()
    rows = [_inspection_row(), _inspection_row(id=11, inspected_at="yesterday")]

    with caplog.at_level(logging.WARNING, logger="services.loader"):
        inspections = loader.load_inspections(rows)

    assert [inspection.id for inspection in inspections] == [10]
    [anomaly] = loader.anomalies
    assert anomaly.entity == "inspection"
    assert anomaly.index == 1
    assert anomaly.record_id == 11
    assert "inspected_at" in anomaly.reason
    assert any(record.message == "Skipping record" for record in caplog.records)


def test_out_of_range_offset_timestamp_is_flagged() -> None:
    loader = SnapshotLoader()
    rows = [
        _inspection_row(id=11, inspected_at="0001-01-01T00:00:00+05:00"),
        _inspection_row(id=12),
    ]

    inspections = loader.load_inspections(rows)

    assert [inspection.id for inspection in inspections] == [12]
    [anomaly] = loader.anomalies
    assert anomaly.record_id == 11
    assert "inspected_at" in anomaly.reason


def test_non_finite_coordinates_are_flagged() -> None:
    loader = SnapshotLoader()

    inspections = loader.load_inspections([_inspection_row(lat="nan", lng="nan")])
    stations = loader.load_stations([_station_row(utm_x="inf")])

    assert inspections == []
    assert stations == []
    assert [anomaly.entity for anomaly in loader.anomalies] == ["inspection", "station"]


def test_unknown_enum_and_missing_station_id_are_flagged() -> None:
    loader = SnapshotLoader()

    inspections = loader.load_inspections(
        [
            _inspection_row(physical_condition="EXCELENTE"),
            _inspection_row(id=12, station_id=None),
        ]
    )

    assert inspections == []
    assert [anomaly.index for anomaly in loader.anomalies] == [0, 1]
    assert "missing station_id" in loader.anomalies[1].reason


def test_soft_deleted_inspections_are_dropped_silently() -> None:
    loader = SnapshotLoader()

    inspections = loader.load_inspections(
        [_inspection_row(deleted_at="2024-03-02T00:00:00Z"), _inspection_row(id=11)]
    )

    assert [inspection.id for inspection in inspections] == [11]
    assert loader.anomalies == []


def test_cycles_and_rooms_translate_wire_labels() -> None:
    loader = SnapshotLoader()

    [cycle] = loader.load_cycles(
        [
            {
                "id": 3,
                "label": "Marzo",
                "period_start": "2024-03-01",
                "period_end": "2024-03-31",
                "status": "ABIERTO",
                "total_rooms": "40",
                "completed_rooms": None,
            }
        ]
    )
    [room] = loader.load_rooms(
        [
            {
                "id": 9,
                "cycle_id": 3,
                "room_number": 101,
                "status": "COMPLETADA",
                "fumigated_at": "2024-03-04T09:00:00",
                "service_type": "NEBULIZACION",
                "fumigator_nombre": "Ana",
                "photos": '["a.jpg", "b.jpg"]',
            }
        ]
    )

    assert cycle.status is CycleStatus.open
    assert cycle.total_rooms == 40
    assert cycle.completed_rooms == 0
    assert cycle.period_start == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert room.room_number == "101"
    assert room.status is RoomStatus.done
    assert room.service_type is ServiceType.fogging
    assert room.photos == ("a.jpg", "b.jpg")
    assert room.operator_name == "Ana"


def test_load_snapshot_collects_anomalies_across_entities() -> None:
    snapshot, anomalies = load_snapshot(
        stations=[_station_row(), _station_row(id=2, type="LASER")],
        inspections=[_inspection_row()],
        cycles=[{"id": 1, "status": "ABIERTO"}],
        rooms=[],
    )

    assert len(snapshot.stations) == 1
    assert len(snapshot.inspections) == 1
    assert snapshot.cycles == []
    assert [anomaly.entity for anomaly in anomalies] == ["station", "cycle"]
    assert snapshot.anomalies == anomalies
