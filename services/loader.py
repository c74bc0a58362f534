"""Normalization of collaborator payloads into canonical records."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas import (
    CyclePayload,
    InspectionPayload,
    RoomFumigationPayload,
    StationPayload,
)
from models.records import (
    DataAnomaly,
    FumigationCycle,
    GeoPoint,
    Inspection,
    RoomFumigation,
    Snapshot,
    Station,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
R = TypeVar("R")


def _geo_point(latitude: Optional[float], longitude: Optional[float]) -> Optional[GeoPoint]:
    if latitude is None or longitude is None:
        return None
    return GeoPoint(latitude=latitude, longitude=longitude)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _inspection(payload: InspectionPayload, station_id: int) -> Inspection:
    return Inspection(
        id=payload.id,
        station_id=station_id,
        inspected_at=payload.inspected_at,
        condition=payload.physical_condition,
        bait_consumed=bool(payload.has_bait),
        droppings_present=bool(payload.bait_replaced),
        location_correct=payload.location_ok is not False,
        location=_geo_point(payload.lat, payload.lng),
        inspector_name=payload.inspector_nombre or None,
        inspector_company=payload.inspector_empresa or None,
        photo_url=payload.photo_url or None,
        notes=payload.observations or None,
    )


class SnapshotLoader:
    """Validate raw records one by one, keeping the good ones.

    A record that fails validation is left out of every aggregate and
    reported as a ``DataAnomaly``; the rest of the batch is unaffected.
    """

    def __init__(self) -> None:
        self.anomalies: List[DataAnomaly] = []

    def load_stations(self, rows: Iterable[Mapping[str, Any]]) -> List[Station]:
        return self._load("station", rows, StationPayload, self._station)

    def load_inspections(self, rows: Iterable[Mapping[str, Any]]) -> List[Inspection]:
        records = self._load("inspection", rows, InspectionPayload, self._top_level_inspection)
        return [record for record in records if record is not None]

    def load_cycles(self, rows: Iterable[Mapping[str, Any]]) -> List[FumigationCycle]:
        return self._load("cycle", rows, CyclePayload, self._cycle)

    def load_rooms(self, rows: Iterable[Mapping[str, Any]]) -> List[RoomFumigation]:
        return self._load("room", rows, RoomFumigationPayload, self._room)

    def load_snapshot(
        self,
        stations: Iterable[Mapping[str, Any]] = (),
        inspections: Iterable[Mapping[str, Any]] = (),
        cycles: Iterable[Mapping[str, Any]] = (),
        rooms: Iterable[Mapping[str, Any]] = (),
    ) -> Snapshot:
        snapshot = Snapshot(
            stations=self.load_stations(stations),
            inspections=self.load_inspections(inspections),
            cycles=self.load_cycles(cycles),
            rooms=self.load_rooms(rooms),
        )
        snapshot.anomalies = list(self.anomalies)
        if snapshot.anomalies:
            logger.warning(
                "Snapshot loaded with skipped records",
                extra={"anomaly_count": len(snapshot.anomalies)},
            )
        return snapshot

    def _load(
        self,
        entity: str,
        rows: Iterable[Mapping[str, Any]],
        schema: Type[P],
        convert: Callable[[P], R],
    ) -> List[R]:
        records: List[R] = []
        for index, row in enumerate(rows):
            record_id = row.get("id") if isinstance(row, Mapping) else None
            try:
                payload = schema.model_validate(row)
                records.append(convert(payload))
            except ValidationError as exc:
                self._flag(entity, index, _describe(exc), record_id)
            except ValueError as exc:
                self._flag(entity, index, str(exc), record_id)
        logger.debug(
            "Loaded collaborator records",
            extra={"entity": entity, "record_count": len(records)},
        )
        return records

    def _flag(self, entity: str, index: int, reason: str, record_id: Any) -> None:
        anomaly = DataAnomaly(
            entity=entity,
            index=index,
            reason=reason,
            record_id=record_id if isinstance(record_id, int) else None,
        )
        self.anomalies.append(anomaly)
        logger.warning(
            "Skipping record",
            extra={
                "entity": entity,
                "record_index": index,
                "record_id": anomaly.record_id,
                "reason": reason,
            },
        )

    @staticmethod
    def _station(payload: StationPayload) -> Station:
        last = None
        if payload.last_inspection is not None and payload.last_inspection.deleted_at is None:
            last = _inspection(payload.last_inspection, station_id=payload.id)
        return Station(
            id=payload.id,
            code=payload.code,
            name=payload.name or "",
            type=payload.type,
            active=payload.is_active is not False,
            installed_at=payload.installed_at,
            location=_geo_point(payload.utm_y, payload.utm_x),
            last_inspection=last,
        )

    @staticmethod
    def _top_level_inspection(payload: InspectionPayload) -> Optional[Inspection]:
        if payload.station_id is None:
            raise ValueError("missing station_id")
        if payload.deleted_at is not None:
            return None
        return _inspection(payload, station_id=payload.station_id)

    @staticmethod
    def _cycle(payload: CyclePayload) -> FumigationCycle:
        return FumigationCycle(
            id=payload.id,
            label=payload.label or f"Cycle {payload.id}",
            period_start=payload.period_start,
            period_end=payload.period_end,
            status=payload.status,
            total_rooms=payload.total_rooms,
            completed_rooms=payload.completed_rooms,
            pending_rooms=payload.pending_rooms,
        )

    @staticmethod
    def _room(payload: RoomFumigationPayload) -> RoomFumigation:
        return RoomFumigation(
            id=payload.id,
            cycle_id=payload.cycle_id,
            room_number=payload.room_number,
            status=payload.status,
            area=payload.area or None,
            fumigated_at=payload.fumigated_at,
            service_type=payload.service_type,
            location=_geo_point(payload.utm_y, payload.utm_x),
            operator_name=payload.fumigator_nombre or None,
            operator_company=payload.fumigator_empresa or None,
            photos=tuple(payload.photos),
            notes=payload.observations or None,
            created_at=payload.created_at,
        )


def load_snapshot(
    stations: Iterable[Mapping[str, Any]] = (),
    inspections: Iterable[Mapping[str, Any]] = (),
    cycles: Iterable[Mapping[str, Any]] = (),
    rooms: Iterable[Mapping[str, Any]] = (),
) -> Tuple[Snapshot, List[DataAnomaly]]:
    """Convenience wrapper returning the snapshot and its anomalies."""
    snapshot = SnapshotLoader().load_snapshot(stations, inspections, cycles, rooms)
    return snapshot, snapshot.anomalies
