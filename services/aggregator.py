"""Aggregation logic for the fumigation executive report."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from operator import attrgetter
from typing import Dict, Iterable, List, Optional, Sequence

from models.records import (
    CycleStatus,
    FumigationCycle,
    Inspection,
    PhysicalCondition,
    RoomFumigation,
    RoomStatus,
    ServiceType,
    Snapshot,
    Station,
    StationType,
)
from services.alerts import (
    ROOM_OVERDUE_DAYS,
    STATION_OVERDUE_DAYS,
    AlertBucket,
    average_condition,
    never_occurred,
    overdue,
    poor_condition,
)
from services.enrichment import (
    average_interval_days,
    group_by,
    latest_by_key,
    latest_inspections,
)
from services.geo import GPSFlag, gps_issues
from services.numeric import percentage, round_half_up, safe_ratio
from services.ranking import RankDirection, RankedEntry, rank
from services.tally import TallyEntry, sort_by_count, tally
from services.temporal import (
    InspectionPeriod,
    Staleness,
    classify_staleness,
    days_since,
    period_window,
    within_window,
)
from services.velocity import CycleVelocity, project_velocity
from settings import get_settings

logger = logging.getLogger(__name__)

CRITICAL_STALENESS_DAYS = 45


@dataclass(frozen=True)
class ReportThresholds:
    station_overdue_days: int = STATION_OVERDUE_DAYS
    room_overdue_days: int = ROOM_OVERDUE_DAYS
    ranking_limit: int = 10
    alert_limit: int = 20


@dataclass
class StationStats:
    """Per-station figures over the inspections in scope."""

    station: Station
    inspection_count: int = 0
    last_inspected: Optional[datetime] = None
    days_since_last: Optional[int] = None
    average_condition: Optional[PhysicalCondition] = None
    consumption_count: int = 0
    activity_count: int = 0
    displaced_count: int = 0
    average_interval_days: Optional[int] = None

    @property
    def label(self) -> str:
        return self.station.label


@dataclass
class StationAnalysis:
    """Station-side report totals.

    Inspections whose station is not in the snapshot still count toward
    ``total_inspections`` and ``average_inspections_per_station``.
    """

    total_stations: int = 0
    active_stations: int = 0
    total_inspections: int = 0
    average_inspections_per_station: float = 0.0
    total_consumption: int = 0
    total_activity: int = 0
    most_inspected: List[RankedEntry] = field(default_factory=list)
    least_inspected: List[RankedEntry] = field(default_factory=list)
    most_consumption: List[RankedEntry] = field(default_factory=list)
    most_activity: List[RankedEntry] = field(default_factory=list)
    most_displaced: List[RankedEntry] = field(default_factory=list)
    never_inspected: Optional[AlertBucket] = None
    overdue: Optional[AlertBucket] = None
    poor_condition: Optional[AlertBucket] = None
    gps_issues: List[GPSFlag] = field(default_factory=list)
    stats: List[StationStats] = field(default_factory=list)


@dataclass
class RoomStats:
    room_number: str
    area: Optional[str] = None
    fumigation_count: int = 0
    last_fumigated: Optional[datetime] = None
    days_since_last: Optional[int] = None

    @property
    def label(self) -> str:
        return self.room_number


@dataclass
class RoomAnalysis:
    total_unique_rooms: int = 0
    average_fumigations_per_room: float = 0.0
    most_fumigated: List[RankedEntry] = field(default_factory=list)
    least_fumigated: List[RankedEntry] = field(default_factory=list)
    never_fumigated: Optional[AlertBucket] = None
    overdue: Optional[AlertBucket] = None
    stats: List[RoomStats] = field(default_factory=list)


@dataclass
class CycleOverview:
    total_cycles: int = 0
    open_cycles: int = 0
    closed_cycles: int = 0
    total_rooms: int = 0
    completed_rooms: int = 0
    pending_rooms: int = 0
    average_completion: int = 0


@dataclass
class OperatorStats:
    name: str
    company: Optional[str] = None
    fumigations: int = 0
    inspections: int = 0

    @property
    def total(self) -> int:
        return self.fumigations + self.inspections


@dataclass
class StationSnapshot:
    """Station population described through each station's latest inspection."""

    total_stations: int = 0
    inspected_stations: int = 0
    by_type: List[TallyEntry] = field(default_factory=list)
    by_condition: List[TallyEntry] = field(default_factory=list)
    with_bait: int = 0
    without_bait: int = 0
    bait_replaced: int = 0
    coverage: int = 0


@dataclass(frozen=True)
class StalenessRow:
    station: Station
    last_inspected: Optional[datetime]
    days_since: Optional[int]
    staleness: Staleness
    critical: bool


@dataclass(frozen=True)
class StationHistory:
    station: Station
    inspection_count: int
    last_inspection: Optional[Inspection]
    days_since: Optional[int]
    staleness: Staleness
    average_interval_days: Optional[int]
    average_condition: Optional[PhysicalCondition]


@dataclass
class ExecutiveReport:
    generated_at: datetime
    period: InspectionPeriod
    cycle_id: Optional[int]
    cycle_overview: CycleOverview
    velocity: Optional[CycleVelocity]
    stations: StationAnalysis
    rooms: RoomAnalysis
    service_distribution: List[TallyEntry]
    operators: List[OperatorStats]
    station_snapshot: StationSnapshot
    anomaly_count: int = 0


def _one_decimal(value: float) -> float:
    return round_half_up(value * 10) / 10


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, thresholds: Optional[ReportThresholds] = None) -> None:
        self.thresholds = thresholds or ReportThresholds()

    def station_analysis(
        self,
        stations: Sequence[Station],
        inspections: Sequence[Inspection],
        now: datetime,
    ) -> StationAnalysis:
        limits = self.thresholds
        stats: Dict[int, StationStats] = {
            station.id: StationStats(station=station) for station in stations
        }
        matched = [inspection for inspection in inspections if inspection.station_id in stats]
        history = group_by(matched, key_fn=lambda inspection: inspection.station_id)
        latest = latest_inspections(matched)

        for station_id, station_inspections in history.items():
            entry = stats[station_id]
            entry.inspection_count = len(station_inspections)
            entry.consumption_count = sum(1 for i in station_inspections if i.bait_consumed)
            entry.activity_count = sum(1 for i in station_inspections if i.droppings_present)
            entry.displaced_count = sum(1 for i in station_inspections if not i.location_correct)
            entry.average_condition = average_condition(i.condition for i in station_inspections)
            entry.average_interval_days = average_interval_days(
                [i.inspected_at for i in station_inspections]
            )
            last = latest[station_id]
            entry.last_inspected = last.inspected_at
            entry.days_since_last = days_since(last.inspected_at, now)

        rows = list(stats.values())
        label = attrgetter("label")

        analysis = StationAnalysis(
            total_stations=len(rows),
            active_stations=sum(1 for station in stations if station.active),
            total_inspections=len(inspections),
            total_consumption=sum(row.consumption_count for row in rows),
            total_activity=sum(row.activity_count for row in rows),
            most_inspected=rank(
                rows, lambda row: row.inspection_count, RankDirection.most,
                limits.ranking_limit, label,
            ),
            least_inspected=rank(
                rows, lambda row: row.inspection_count, RankDirection.least,
                limits.ranking_limit, label,
            ),
            most_consumption=rank(
                rows, lambda row: row.consumption_count, RankDirection.most,
                limits.ranking_limit, label,
            ),
            most_activity=rank(
                rows, lambda row: row.activity_count, RankDirection.most,
                limits.ranking_limit, label,
            ),
            most_displaced=rank(
                rows, lambda row: row.displaced_count, RankDirection.most,
                limits.ranking_limit, label,
            ),
            never_inspected=never_occurred(
                rows, key_fn=lambda row: row.station.id, latest=latest, label_fn=label
            ),
            overdue=overdue(
                rows,
                days_fn=lambda row: row.days_since_last,
                threshold_days=limits.station_overdue_days,
                limit=limits.alert_limit,
                label_fn=label,
            ),
            poor_condition=poor_condition(
                rows, condition_fn=lambda row: row.average_condition, label_fn=label
            ),
            gps_issues=gps_issues(inspections, stations),
            stats=rows,
        )
        if rows:
            analysis.average_inspections_per_station = _one_decimal(
                len(inspections) / len(rows)
            )
        return analysis

    def room_analysis(
        self, rooms: Sequence[RoomFumigation], now: datetime
    ) -> RoomAnalysis:
        limits = self.thresholds
        stats: Dict[str, RoomStats] = {}
        for room in rooms:
            if room.room_number not in stats:
                stats[room.room_number] = RoomStats(room_number=room.room_number, area=room.area)

        done = [room for room in rooms if room.status is RoomStatus.done]
        for room in done:
            stats[room.room_number].fumigation_count += 1

        latest = latest_by_key(
            done,
            key_fn=lambda room: room.room_number,
            time_fn=lambda room: room.fumigated_at,
        )
        for room_number, room in latest.items():
            entry = stats[room_number]
            entry.last_fumigated = room.fumigated_at
            entry.days_since_last = days_since(room.fumigated_at, now)

        rows = list(stats.values())
        label = attrgetter("label")
        fumigated_rooms = {row.room_number for row in rows if row.fumigation_count > 0}

        analysis = RoomAnalysis(
            total_unique_rooms=len(rows),
            most_fumigated=rank(
                rows, lambda row: row.fumigation_count, RankDirection.most,
                limits.ranking_limit, label,
            ),
            least_fumigated=rank(
                rows, lambda row: row.fumigation_count, RankDirection.least,
                limits.ranking_limit, label,
            ),
            never_fumigated=never_occurred(
                rows,
                key_fn=lambda row: row.room_number,
                latest=dict.fromkeys(fumigated_rooms),
                label_fn=label,
            ),
            overdue=overdue(
                rows,
                days_fn=lambda row: row.days_since_last,
                threshold_days=limits.room_overdue_days,
                limit=limits.alert_limit,
                label_fn=label,
            ),
            stats=rows,
        )
        if rows:
            analysis.average_fumigations_per_room = _one_decimal(
                sum(row.fumigation_count for row in rows) / len(rows)
            )
        return analysis

    def cycle_overview(self, cycles: Sequence[FumigationCycle]) -> CycleOverview:
        overview = CycleOverview(
            total_cycles=len(cycles),
            open_cycles=sum(1 for cycle in cycles if cycle.status is CycleStatus.open),
            closed_cycles=sum(1 for cycle in cycles if cycle.status is CycleStatus.closed),
            total_rooms=sum(cycle.total_rooms for cycle in cycles),
            completed_rooms=sum(cycle.completed_rooms for cycle in cycles),
            pending_rooms=sum(cycle.pending_rooms for cycle in cycles),
        )
        if cycles:
            rates = [
                (safe_ratio(cycle.completed_rooms, cycle.total_rooms) or 0.0) * 100
                for cycle in cycles
            ]
            overview.average_completion = round_half_up(sum(rates) / len(rates))
        return overview

    def cycle_velocity(
        self,
        cycle: Optional[FumigationCycle],
        rooms: Sequence[RoomFumigation],
        now: datetime,
    ) -> Optional[CycleVelocity]:
        """Project completion for ``cycle`` or, without one, for all ``rooms``."""
        if cycle is not None:
            scoped = [room for room in rooms if room.cycle_id == cycle.id]
            completed = sum(1 for room in scoped if room.status is RoomStatus.done)
            return project_velocity(
                start=cycle.period_start,
                end=cycle.period_end,
                total_units=cycle.total_rooms,
                completed_units=completed,
                now=now,
            )

        created = [room.created_at for room in rooms if room.created_at is not None]
        if not created:
            return None
        completed = sum(1 for room in rooms if room.status is RoomStatus.done)
        return project_velocity(
            start=min(created),
            end=now,
            total_units=len(rooms),
            completed_units=completed,
            now=now,
        )

    def service_distribution(self, rooms: Iterable[RoomFumigation]) -> List[TallyEntry]:
        done = [room for room in rooms if room.status is RoomStatus.done]
        return sort_by_count(
            tally(done, category_fn=lambda room: room.service_type, universe=list(ServiceType))
        )

    def operator_ranking(
        self,
        rooms: Iterable[RoomFumigation],
        inspections: Iterable[Inspection],
        limit: Optional[int] = None,
    ) -> List[OperatorStats]:
        operators: Dict[str, OperatorStats] = {}

        def _entry(name: str, company: Optional[str]) -> OperatorStats:
            key = name.strip().lower()
            if key not in operators:
                operators[key] = OperatorStats(name=name.strip(), company=company)
            return operators[key]

        for room in rooms:
            if room.status is RoomStatus.done and room.operator_name:
                _entry(room.operator_name, room.operator_company).fumigations += 1
        for inspection in inspections:
            if inspection.inspector_name:
                _entry(inspection.inspector_name, inspection.inspector_company).inspections += 1

        ordered = sorted(operators.values(), key=lambda op: op.total, reverse=True)
        return ordered[: limit if limit is not None else self.thresholds.ranking_limit]

    def station_snapshot(
        self, stations: Sequence[Station], inspections: Iterable[Inspection]
    ) -> StationSnapshot:
        latest = latest_inspections(inspections)
        last_seen = [latest[station.id] for station in stations if station.id in latest]

        return StationSnapshot(
            total_stations=len(stations),
            inspected_stations=len(last_seen),
            by_type=tally(stations, lambda station: station.type, list(StationType)),
            by_condition=tally(
                last_seen, lambda inspection: inspection.condition, list(PhysicalCondition)
            ),
            with_bait=sum(1 for inspection in last_seen if inspection.bait_consumed),
            without_bait=sum(1 for inspection in last_seen if not inspection.bait_consumed),
            bait_replaced=sum(1 for inspection in last_seen if inspection.droppings_present),
            coverage=percentage(len(last_seen), len(stations)),
        )

    def staleness_listing(
        self,
        stations: Iterable[Station],
        now: datetime,
        station_type: Optional[StationType] = None,
    ) -> List[StalenessRow]:
        """Active stations ordered from most stale to freshest, never-inspected last.

        Relies on ``Station.last_inspection`` being populated, either by the
        collaborator or by ``attach_last_inspections``.
        """
        rows: List[StalenessRow] = []
        for station in stations:
            if not station.active:
                continue
            if station_type is not None and station.type is not station_type:
                continue
            last = station.last_inspection
            days = days_since(last.inspected_at, now) if last is not None else None
            rows.append(
                StalenessRow(
                    station=station,
                    last_inspected=last.inspected_at if last is not None else None,
                    days_since=days,
                    staleness=classify_staleness(days),
                    critical=days is not None and days > CRITICAL_STALENESS_DAYS,
                )
            )

        rows.sort(key=lambda row: (row.days_since is None, -(row.days_since or 0)))
        return rows

    def station_history(
        self, station: Station, inspections: Iterable[Inspection], now: datetime
    ) -> StationHistory:
        own = [inspection for inspection in inspections if inspection.station_id == station.id]
        last = latest_inspections(own).get(station.id)
        days = days_since(last.inspected_at, now) if last is not None else None
        return StationHistory(
            station=station,
            inspection_count=len(own),
            last_inspection=last,
            days_since=days,
            staleness=classify_staleness(days),
            average_interval_days=average_interval_days([i.inspected_at for i in own]),
            average_condition=average_condition(i.condition for i in own),
        )

    def executive_report(
        self,
        snapshot: Snapshot,
        now: datetime,
        cycle_id: Optional[int] = None,
        period: InspectionPeriod = InspectionPeriod.last_30,
    ) -> ExecutiveReport:
        cycle: Optional[FumigationCycle] = None
        rooms = snapshot.rooms
        if cycle_id is not None:
            cycle = next((c for c in snapshot.cycles if c.id == cycle_id), None)
            if cycle is None:
                raise KeyError(f"Cycle {cycle_id!r} not found.")
            rooms = [room for room in rooms if room.cycle_id == cycle_id]

        start, end = period_window(period, now)
        inspections = [
            inspection
            for inspection in snapshot.inspections
            if within_window(inspection.inspected_at, start, end)
        ]
        logger.info(
            "Building executive report",
            extra={
                "cycle_id": cycle_id,
                "period": period.value,
                "record_count": len(inspections) + len(rooms),
                "anomaly_count": len(snapshot.anomalies),
            },
        )

        return ExecutiveReport(
            generated_at=now,
            period=period,
            cycle_id=cycle_id,
            cycle_overview=self.cycle_overview(snapshot.cycles),
            velocity=self.cycle_velocity(cycle, rooms, now),
            stations=self.station_analysis(snapshot.stations, inspections, now),
            rooms=self.room_analysis(rooms, now),
            service_distribution=self.service_distribution(rooms),
            operators=self.operator_ranking(rooms, inspections),
            station_snapshot=self.station_snapshot(snapshot.stations, inspections),
            anomaly_count=len(snapshot.anomalies),
        )


@lru_cache
def build_default_aggregator(
    ranking_limit: Optional[int] = None,
    alert_limit: Optional[int] = None,
) -> Aggregator:
    """Factory that wires the aggregator with configured display limits."""
    settings = get_settings()
    thresholds = ReportThresholds(
        ranking_limit=ranking_limit or settings.ranking_limit,
        alert_limit=alert_limit or settings.alert_limit,
    )
    return Aggregator(thresholds=thresholds)
