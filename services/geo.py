"""
GPS consistency checks for station inspections.

Inspections of outdoor rodent stations are expected to carry the technician's
coordinate and to be taken next to the station. UV traps are mounted indoors
where phone GPS drifts, so they are never flagged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from models.records import GeoPoint, Inspection, Station, StationType

EARTH_RADIUS_METERS = 6_371_000.0
MAX_GPS_DISTANCE_METERS = 30.0
GPS_TRACKED_TYPES = frozenset({StationType.rodent})


class GPSIssue(str, Enum):
    missing_gps = "MISSING_GPS"
    too_far = "TOO_FAR"


@dataclass(slots=True, frozen=True)
class GPSFlag:
    station: Station
    inspection: Inspection
    issue: GPSIssue
    distance_meters: Optional[float] = None


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points on a spherical earth."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    delta_phi = math.radians(b.latitude - a.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * c


def check_gps(inspection: Inspection, station: Station) -> Optional[GPSFlag]:
    if station.type not in GPS_TRACKED_TYPES:
        return None

    if inspection.location is None:
        return GPSFlag(station=station, inspection=inspection, issue=GPSIssue.missing_gps)

    if station.location is None:
        return None

    distance = haversine_meters(inspection.location, station.location)
    if distance > MAX_GPS_DISTANCE_METERS:
        return GPSFlag(
            station=station,
            inspection=inspection,
            issue=GPSIssue.too_far,
            distance_meters=distance,
        )
    return None


def gps_issues(
    inspections: Iterable[Inspection], stations: Iterable[Station]
) -> List[GPSFlag]:
    """Flag every inspection with a GPS problem, newest inspection first."""
    by_id = {station.id: station for station in stations}
    flags: List[GPSFlag] = []
    for inspection in inspections:
        station = by_id.get(inspection.station_id)
        if station is None:
            continue
        flag = check_gps(inspection, station)
        if flag is not None:
            flags.append(flag)
    flags.sort(key=lambda flag: flag.inspection.inspected_at, reverse=True)
    return flags
