"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import (
    DataAnomalyOut,
    ExecutiveReportResponse,
    ReportRequest,
    StalenessRequest,
    StalenessResponse,
    StalenessRowOut,
)
from services.aggregator import Aggregator, build_default_aggregator
from services.enrichment import attach_last_inspections
from services.loader import SnapshotLoader

router = APIRouter()


def get_aggregator() -> Aggregator:
    return build_default_aggregator()


def get_loader() -> SnapshotLoader:
    return SnapshotLoader()


def _now(requested: datetime | None) -> datetime:
    return requested or datetime.now(timezone.utc)


@router.post(
    "/reports/executive",
    response_model=ExecutiveReportResponse,
    summary="Aggregate stations, inspections and fumigation cycles into an executive report.",
)
async def executive_report(
    request: ReportRequest,
    aggregator: Aggregator = Depends(get_aggregator),
    loader: SnapshotLoader = Depends(get_loader),
) -> ExecutiveReportResponse:
    snapshot = loader.load_snapshot(
        stations=request.stations,
        inspections=request.inspections,
        cycles=request.cycles,
        rooms=request.rooms,
    )
    try:
        report = aggregator.executive_report(
            snapshot,
            now=_now(request.now),
            cycle_id=request.cycle_id,
            period=request.period,
        )
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]) if exc.args else "Not found.",
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    response = ExecutiveReportResponse.model_validate(report)
    response.anomalies = [DataAnomalyOut.model_validate(item) for item in snapshot.anomalies]
    return response


@router.post(
    "/reports/staleness",
    response_model=StalenessResponse,
    summary="List active stations ordered by days since their last inspection.",
)
async def staleness_report(
    request: StalenessRequest,
    aggregator: Aggregator = Depends(get_aggregator),
    loader: SnapshotLoader = Depends(get_loader),
) -> StalenessResponse:
    snapshot = loader.load_snapshot(
        stations=request.stations,
        inspections=request.inspections,
    )
    stations = snapshot.stations
    if request.inspections:
        stations = attach_last_inspections(stations, snapshot.inspections)

    now = _now(request.now)
    rows = aggregator.staleness_listing(stations, now, station_type=request.station_type)
    return StalenessResponse(
        generated_at=now,
        rows=[StalenessRowOut.model_validate(row) for row in rows],
        anomalies=[DataAnomalyOut.model_validate(item) for item in snapshot.anomalies],
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
