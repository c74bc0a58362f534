from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

import typer

from models.records import DataAnomaly
from services.aggregator import ExecutiveReport, StalenessRow, StationHistory
from services.alerts import AlertBucket
from services.ranking import RankedEntry
from services.tally import TallyEntry
from services.temporal import Staleness
from services.velocity import CycleVelocity

_STALENESS_COLORS = {
    Staleness.current: typer.colors.GREEN,
    Staleness.due_soon: typer.colors.YELLOW,
    Staleness.overdue: typer.colors.RED,
    Staleness.never: typer.colors.BRIGHT_BLACK,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else "never"


def _days(value: Optional[int]) -> str:
    return f"{value}d" if value is not None else "-"


def _echo_ranking(title: str, entries: Sequence[RankedEntry]) -> None:
    typer.echo(f"{title}:")
    if not entries:
        typer.echo("  (none)")
        return
    for position, entry in enumerate(entries, start=1):
        metric = int(entry.metric) if float(entry.metric).is_integer() else entry.metric
        typer.echo(f"  {position}. {entry.label} ({metric})")


def _echo_alerts(title: str, bucket: Optional[AlertBucket]) -> None:
    count = bucket.count if bucket is not None else 0
    color = typer.colors.RED if count else typer.colors.GREEN
    typer.secho(f"{title}: {count}", fg=color)
    for entry in bucket.entries if bucket is not None else []:
        suffix = f" ({entry.days}d)" if entry.days is not None else ""
        typer.echo(f"  - {entry.label}{suffix}")


def _echo_tally(title: str, entries: Sequence[TallyEntry]) -> None:
    typer.echo(f"{title}:")
    for entry in entries:
        typer.echo(f"  - {entry.category}: {entry.count} ({entry.percentage}%)")


def render_velocity(velocity: Optional[CycleVelocity]) -> None:
    echo_heading("Cycle Velocity")
    if velocity is None:
        typer.echo("No cycle data available.")
        return
    required = (
        f"{velocity.required_rate:.1f}/day" if velocity.required_rate is not None else "n/a"
    )
    echo_key_values(
        [
            ("completed", f"{velocity.completed_units}/{velocity.total_units}"),
            ("completion_rate", f"{velocity.completion_rate:.1f}%"),
            ("elapsed_days", velocity.elapsed_days),
            ("remaining_days", velocity.remaining_days),
            ("observed_rate", f"{velocity.observed_rate:.1f}/day"),
            ("required_rate", required),
            ("projected_total", f"{velocity.projected_total:.0f}"),
        ]
    )
    if velocity.on_track:
        typer.secho("on track", fg=typer.colors.GREEN)
    else:
        typer.secho("behind schedule", fg=typer.colors.RED)


def render_anomalies(anomalies: Sequence[DataAnomaly]) -> None:
    if not anomalies:
        return
    typer.echo()
    typer.secho(f"Skipped records: {len(anomalies)}", fg=typer.colors.YELLOW)
    for anomaly in anomalies:
        ident = f" id={anomaly.record_id}" if anomaly.record_id is not None else ""
        typer.echo(f"  - {anomaly.entity}[{anomaly.index}]{ident}: {anomaly.reason}")


def render_report(report: ExecutiveReport, anomalies: Sequence[DataAnomaly] = ()) -> None:
    echo_heading("Executive Report")
    echo_key_values(
        [
            ("generated_at", report.generated_at.isoformat()),
            ("period", report.period.value),
            ("cycle_id", report.cycle_id if report.cycle_id is not None else "all"),
        ]
    )

    typer.echo()
    echo_heading("Cycles")
    overview = report.cycle_overview
    echo_key_values(
        [
            ("total", overview.total_cycles),
            ("open", overview.open_cycles),
            ("closed", overview.closed_cycles),
            ("rooms", f"{overview.completed_rooms}/{overview.total_rooms}"),
            ("average_completion", f"{overview.average_completion}%"),
        ]
    )
    typer.echo()
    render_velocity(report.velocity)

    typer.echo()
    echo_heading("Stations")
    stations = report.stations
    echo_key_values(
        [
            ("stations", f"{stations.active_stations} active of {stations.total_stations}"),
            ("inspections", stations.total_inspections),
            ("per_station", stations.average_inspections_per_station),
            ("consumption", stations.total_consumption),
            ("activity", stations.total_activity),
            ("gps_issues", len(stations.gps_issues)),
        ]
    )
    _echo_ranking("most inspected", stations.most_inspected)
    _echo_ranking("least inspected", stations.least_inspected)
    _echo_ranking("most consumption", stations.most_consumption)
    _echo_alerts("never inspected", stations.never_inspected)
    _echo_alerts("overdue", stations.overdue)
    _echo_alerts("poor condition", stations.poor_condition)

    typer.echo()
    echo_heading("Rooms")
    rooms = report.rooms
    echo_key_values(
        [
            ("unique_rooms", rooms.total_unique_rooms),
            ("per_room", rooms.average_fumigations_per_room),
        ]
    )
    _echo_ranking("most fumigated", rooms.most_fumigated)
    _echo_alerts("never fumigated", rooms.never_fumigated)
    _echo_alerts("overdue", rooms.overdue)
    _echo_tally("service types", report.service_distribution)

    typer.echo()
    echo_heading("Operators")
    if report.operators:
        for operator in report.operators:
            company = f" [{operator.company}]" if operator.company else ""
            typer.echo(
                f"  - {operator.name}{company}: {operator.fumigations} fumigations, "
                f"{operator.inspections} inspections"
            )
    else:
        typer.echo("No operator activity recorded.")

    render_anomalies(anomalies)


def render_staleness(rows: Sequence[StalenessRow]) -> None:
    echo_heading("Station Staleness")
    if not rows:
        typer.echo("No active stations.")
        return
    for row in rows:
        marker = " !" if row.critical else ""
        typer.secho(
            f"  {row.station.label:<12} {row.station.type.value:<8} "
            f"{_date(row.last_inspected):<10} {_days(row.days_since):>6}{marker}",
            fg=_STALENESS_COLORS[row.staleness],
        )


def render_history(history: StationHistory) -> None:
    echo_heading(f"Station {history.station.label}")
    last = history.last_inspection
    echo_key_values(
        [
            ("type", history.station.type.value),
            ("active", history.station.active),
            ("inspections", history.inspection_count),
            ("last_inspection", _date(last.inspected_at if last is not None else None)),
            ("days_since", _days(history.days_since)),
            ("staleness", history.staleness.value),
            ("average_interval", _days(history.average_interval_days)),
            (
                "average_condition",
                history.average_condition.value if history.average_condition else "-",
            ),
        ]
    )
