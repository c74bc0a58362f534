"""Pydantic schemas for the HTTP API layer.

``*Payload`` models describe records as the fumigation REST API serves them:
flags may be ``0``/``1`` or JSON booleans, enums use the Spanish labels and
numbers sometimes arrive as strings. Validating through them is the single
place where that ambiguity is resolved.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from models.records import (
    CycleStatus,
    PhysicalCondition,
    RoomStatus,
    ServiceType,
    StationType,
)
from services.alerts import AlertKind
from services.geo import GPSIssue
from services.temporal import InspectionPeriod, Staleness, parse_timestamp


def _blank_as_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _optional_timestamp(value: Any) -> Optional[datetime]:
    value = _blank_as_none(value)
    if value is None:
        return None
    return parse_timestamp(value)


def _text(value: Any) -> Any:
    if value is None:
        return None
    return str(value).strip()


def _count(value: Any) -> Any:
    value = _blank_as_none(value)
    return 0 if value is None else value


def _optional_enum(enum_cls):
    def _convert(value: Any) -> Any:
        value = _blank_as_none(value)
        return None if value is None else enum_cls.from_wire(value)

    return _convert


def _photo_list(value: Any) -> List[str]:
    value = _blank_as_none(value)
    if value is None:
        return []
    if isinstance(value, str):
        candidate = value.strip()
        if candidate.startswith("["):
            value = json.loads(candidate)
        else:
            return [candidate]
    if not isinstance(value, (list, tuple)):
        raise ValueError("photos must be a list of URLs")
    return [str(item).strip() for item in value if item]


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
OptionalTimestamp = Annotated[Optional[datetime], BeforeValidator(_optional_timestamp)]
Coordinate = Annotated[Optional[float], BeforeValidator(_blank_as_none)]
Flag = Annotated[Optional[bool], BeforeValidator(_blank_as_none)]
Text = Annotated[Optional[str], BeforeValidator(_text)]
Count = Annotated[int, BeforeValidator(_count)]


class _WirePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, allow_inf_nan=False)


class InspectionPayload(_WirePayload):
    """A bait station inspection row."""

    id: int
    station_id: Optional[int] = None
    inspected_at: Timestamp
    physical_condition: Annotated[
        PhysicalCondition, BeforeValidator(PhysicalCondition.from_wire)
    ]
    has_bait: Flag = None
    bait_replaced: Flag = None
    location_ok: Flag = None
    lat: Coordinate = None
    lng: Coordinate = None
    photo_url: Text = None
    observations: Text = None
    inspector_nombre: Text = None
    inspector_empresa: Text = None
    deleted_at: OptionalTimestamp = None


class StationPayload(_WirePayload):
    """A bait station row, optionally joined with its latest inspection."""

    id: int
    code: Annotated[str, BeforeValidator(_text)]
    name: Text = None
    type: Annotated[StationType, BeforeValidator(StationType.from_wire)]
    utm_x: Coordinate = None
    utm_y: Coordinate = None
    installed_at: OptionalTimestamp = None
    is_active: Flag = None
    last_inspection: Optional[InspectionPayload] = Field(
        default=None, alias="lastInspection"
    )


class CyclePayload(_WirePayload):
    id: int
    label: Text = None
    period_start: Timestamp
    period_end: Timestamp
    status: Annotated[CycleStatus, BeforeValidator(CycleStatus.from_wire)]
    total_rooms: Count = 0
    completed_rooms: Count = 0
    pending_rooms: Count = 0


class RoomFumigationPayload(_WirePayload):
    id: int
    cycle_id: int
    room_number: Annotated[str, BeforeValidator(_text)]
    area: Text = None
    status: Annotated[RoomStatus, BeforeValidator(RoomStatus.from_wire)]
    fumigated_at: OptionalTimestamp = None
    service_type: Annotated[
        Optional[ServiceType], BeforeValidator(_optional_enum(ServiceType))
    ] = None
    utm_x: Coordinate = None
    utm_y: Coordinate = None
    fumigator_nombre: Text = None
    fumigator_empresa: Text = None
    photos: Annotated[List[str], BeforeValidator(_photo_list)] = Field(default_factory=list)
    observations: Text = None
    created_at: OptionalTimestamp = None


class ReportRequest(BaseModel):
    """Raw collaborator records to aggregate.

    Records stay loosely typed here so that one malformed row is reported as
    an anomaly instead of rejecting the whole request.
    """

    stations: List[Dict[str, Any]] = Field(default_factory=list)
    inspections: List[Dict[str, Any]] = Field(default_factory=list)
    cycles: List[Dict[str, Any]] = Field(default_factory=list)
    rooms: List[Dict[str, Any]] = Field(default_factory=list)
    cycle_id: Optional[int] = None
    period: InspectionPeriod = InspectionPeriod.last_30
    now: OptionalTimestamp = None


class StalenessRequest(BaseModel):
    stations: List[Dict[str, Any]] = Field(default_factory=list)
    inspections: List[Dict[str, Any]] = Field(default_factory=list)
    station_type: Annotated[
        Optional[StationType], BeforeValidator(_optional_enum(StationType))
    ] = None
    now: OptionalTimestamp = None


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class GeoPointOut(_FromDomain):
    latitude: float
    longitude: float


class StationOut(_FromDomain):
    id: int
    code: str
    name: str
    type: StationType
    active: bool
    location: Optional[GeoPointOut] = None


class InspectionOut(_FromDomain):
    id: int
    station_id: int
    inspected_at: datetime
    condition: PhysicalCondition
    bait_consumed: bool
    droppings_present: bool
    location_correct: bool
    location: Optional[GeoPointOut] = None
    inspector_name: Optional[str] = None
    inspector_company: Optional[str] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None


class RankedEntryOut(_FromDomain):
    label: str
    metric: float


class AlertEntryOut(_FromDomain):
    label: str
    days: Optional[int] = None
    condition: Optional[PhysicalCondition] = None


class AlertBucketOut(_FromDomain):
    kind: AlertKind
    count: int
    entries: List[AlertEntryOut] = Field(default_factory=list)


class GPSFlagOut(_FromDomain):
    station: StationOut
    inspection: InspectionOut
    issue: GPSIssue
    distance_meters: Optional[float] = None


class StationStatsOut(_FromDomain):
    station: StationOut
    inspection_count: int
    last_inspected: Optional[datetime] = None
    days_since_last: Optional[int] = None
    average_condition: Optional[PhysicalCondition] = None
    consumption_count: int
    activity_count: int
    displaced_count: int
    average_interval_days: Optional[int] = Field(
        default=None, description="Null when a station has fewer than two inspections."
    )


class StationAnalysisOut(_FromDomain):
    total_stations: int
    active_stations: int
    total_inspections: int
    average_inspections_per_station: float
    total_consumption: int
    total_activity: int
    most_inspected: List[RankedEntryOut]
    least_inspected: List[RankedEntryOut]
    most_consumption: List[RankedEntryOut]
    most_activity: List[RankedEntryOut]
    most_displaced: List[RankedEntryOut]
    never_inspected: Optional[AlertBucketOut] = None
    overdue: Optional[AlertBucketOut] = None
    poor_condition: Optional[AlertBucketOut] = None
    gps_issues: List[GPSFlagOut]
    stats: List[StationStatsOut]


class RoomStatsOut(_FromDomain):
    room_number: str
    area: Optional[str] = None
    fumigation_count: int
    last_fumigated: Optional[datetime] = None
    days_since_last: Optional[int] = None


class RoomAnalysisOut(_FromDomain):
    total_unique_rooms: int
    average_fumigations_per_room: float
    most_fumigated: List[RankedEntryOut]
    least_fumigated: List[RankedEntryOut]
    never_fumigated: Optional[AlertBucketOut] = None
    overdue: Optional[AlertBucketOut] = None
    stats: List[RoomStatsOut]


class CycleOverviewOut(_FromDomain):
    total_cycles: int
    open_cycles: int
    closed_cycles: int
    total_rooms: int
    completed_rooms: int
    pending_rooms: int
    average_completion: int


class CycleVelocityOut(_FromDomain):
    total_units: int
    completed_units: int
    pending_units: int
    completion_rate: float
    elapsed_days: int
    total_days: int
    remaining_days: int
    observed_rate: float
    projected_total: float
    required_rate: Optional[float] = Field(
        default=None, description="Null once no days remain in the cycle."
    )
    on_track: bool


class TallyEntryOut(_FromDomain):
    category: str
    count: int
    percentage: int


class OperatorStatsOut(_FromDomain):
    name: str
    company: Optional[str] = None
    fumigations: int
    inspections: int
    total: int


class StationSnapshotOut(_FromDomain):
    total_stations: int
    inspected_stations: int
    by_type: List[TallyEntryOut]
    by_condition: List[TallyEntryOut]
    with_bait: int
    without_bait: int
    bait_replaced: int
    coverage: int


class DataAnomalyOut(_FromDomain):
    entity: str
    index: int
    reason: str
    record_id: Optional[int] = None


class ExecutiveReportResponse(_FromDomain):
    generated_at: datetime
    period: InspectionPeriod
    cycle_id: Optional[int] = None
    cycle_overview: CycleOverviewOut
    velocity: Optional[CycleVelocityOut] = None
    stations: StationAnalysisOut
    rooms: RoomAnalysisOut
    service_distribution: List[TallyEntryOut]
    operators: List[OperatorStatsOut]
    station_snapshot: StationSnapshotOut
    anomaly_count: int
    anomalies: List[DataAnomalyOut] = Field(default_factory=list)


class StalenessRowOut(_FromDomain):
    station: StationOut
    last_inspected: Optional[datetime] = None
    days_since: Optional[int] = None
    staleness: Staleness
    critical: bool


class StalenessResponse(BaseModel):
    generated_at: datetime
    rows: List[StalenessRowOut]
    anomalies: List[DataAnomalyOut] = Field(default_factory=list)
