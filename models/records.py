"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class _WireEnum(str, Enum):
    """Enum that also accepts the collaborator's legacy wire labels."""

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def from_wire(cls, raw: object) -> "_WireEnum":
        if isinstance(raw, cls):
            return raw
        candidate = str(raw).strip().upper()
        candidate = cls.aliases().get(candidate, candidate)
        try:
            return cls(candidate)
        except ValueError as exc:
            raise ValueError(f"unknown {cls.__name__} value {raw!r}") from exc


class StationType(_WireEnum):
    rodent = "RODENT"
    uv_trap = "UV_TRAP"
    other = "OTHER"

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {"ROEDOR": "RODENT", "UV": "UV_TRAP", "OTRO": "OTHER"}


class PhysicalCondition(_WireEnum):
    good = "GOOD"
    fair = "FAIR"
    poor = "POOR"

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {"BUENA": "GOOD", "REGULAR": "FAIR", "MALA": "POOR"}

    @property
    def score(self) -> int:
        return _CONDITION_SCORES[self]


_CONDITION_SCORES = {
    PhysicalCondition.good: 3,
    PhysicalCondition.fair: 2,
    PhysicalCondition.poor: 1,
}


class CycleStatus(_WireEnum):
    open = "OPEN"
    closed = "CLOSED"

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {"ABIERTO": "OPEN", "CERRADO": "CLOSED"}


class RoomStatus(_WireEnum):
    pending = "PENDING"
    done = "DONE"
    not_applicable = "NOT_APPLICABLE"

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {
            "PENDIENTE": "PENDING",
            "COMPLETADA": "DONE",
            "NO_APLICA": "NOT_APPLICABLE",
        }


class ServiceType(_WireEnum):
    preventive = "PREVENTIVE"
    corrective = "CORRECTIVE"
    fogging = "FOGGING"
    spray = "SPRAY"
    gel = "GEL"
    other = "OTHER"

    @classmethod
    def aliases(cls) -> Dict[str, str]:
        return {
            "PREVENTIVO": "PREVENTIVE",
            "CORRECTIVO": "CORRECTIVE",
            "NEBULIZACION": "FOGGING",
            "ASPERSION": "SPRAY",
            "OTRO": "OTHER",
        }


@dataclass(slots=True, frozen=True)
class GeoPoint:
    """A coordinate in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class Inspection:
    """A technician's field visit to a single station."""

    id: int
    station_id: int
    inspected_at: datetime
    condition: PhysicalCondition
    bait_consumed: bool = False
    droppings_present: bool = False
    location_correct: bool = True
    location: Optional[GeoPoint] = None
    inspector_name: Optional[str] = None
    inspector_company: Optional[str] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Station:
    """A fixed bait station or UV trap."""

    id: int
    code: str
    type: StationType
    name: str = ""
    active: bool = True
    installed_at: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    last_inspection: Optional[Inspection] = None

    @property
    def label(self) -> str:
        return self.code or self.name or str(self.id)


@dataclass(slots=True, frozen=True)
class FumigationCycle:
    """A time-boxed batch of room fumigation work."""

    id: int
    label: str
    period_start: datetime
    period_end: datetime
    status: CycleStatus
    total_rooms: int = 0
    completed_rooms: int = 0
    pending_rooms: int = 0


@dataclass(slots=True, frozen=True)
class RoomFumigation:
    """The service record (or pending need) for one room within a cycle."""

    id: int
    cycle_id: int
    room_number: str
    status: RoomStatus
    area: Optional[str] = None
    fumigated_at: Optional[datetime] = None
    service_type: Optional[ServiceType] = None
    location: Optional[GeoPoint] = None
    operator_name: Optional[str] = None
    operator_company: Optional[str] = None
    photos: Tuple[str, ...] = ()
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class DataAnomaly:
    """A collaborator record rejected at the data-access boundary."""

    entity: str
    index: int
    reason: str
    record_id: Optional[int] = None


@dataclass(slots=True)
class Snapshot:
    """Normalized records for one computation pass."""

    stations: List[Station] = field(default_factory=list)
    inspections: List[Inspection] = field(default_factory=list)
    cycles: List[FumigationCycle] = field(default_factory=list)
    rooms: List[RoomFumigation] = field(default_factory=list)
    anomalies: List[DataAnomaly] = field(default_factory=list)
