from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import typer

from cli.client import FumigationClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_anomalies,
    render_history,
    render_report,
    render_staleness,
    render_velocity,
)
from logging_config import configure_logging
from models.records import StationType
from services.aggregator import build_default_aggregator
from services.loader import SnapshotLoader
from services.temporal import InspectionPeriod


@dataclass
class CLIState:
    config: CLIConfig
    client: FumigationClient
    loader: SnapshotLoader


app = typer.Typer(
    help="Operational metrics for bait station inspections and room fumigation cycles.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Fumigation API base URL (defaults to API_BASE_URL env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log debug details to stderr."
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging(level="DEBUG" if verbose else None, stream="ext://sys.stderr")
    config = load_config(base_url=base_url, timeout=timeout)
    client = FumigationClient(config)
    ctx.obj = CLIState(config=config, client=client, loader=SnapshotLoader())
    ctx.call_on_close(client.close)


@app.command("report")
def report_command(
    ctx: typer.Context,
    cycle_id: Optional[int] = typer.Option(
        None, "--cycle-id", "-c", help="Restrict room metrics to a single cycle."
    ),
    period: InspectionPeriod = typer.Option(
        InspectionPeriod.last_30, "--period", "-p", help="Inspection window."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", min=1, help="Entries per ranking (defaults to REPORT_RANKING_LIMIT)."
    ),
) -> None:
    """Build the executive report over stations, inspections and cycles."""
    state = _get_state(ctx)
    snapshot = state.client.fetch_snapshot(
        state.loader,
        inspection_limit=state.config.inspection_limit,
        cycle_id=cycle_id,
    )
    aggregator = build_default_aggregator(ranking_limit=limit)
    try:
        report = aggregator.executive_report(snapshot, _now(), cycle_id=cycle_id, period=period)
    except KeyError as exc:
        _fail(str(exc.args[0]) if exc.args else "Cycle not found.")
    render_report(report, snapshot.anomalies)


@app.command("stations")
def stations_command(
    ctx: typer.Context,
    station_type: Optional[StationType] = typer.Option(
        None, "--type", "-t", help="Only list stations of this type."
    ),
) -> None:
    """List active stations from most to least overdue."""
    state = _get_state(ctx)
    stations = state.loader.load_stations(state.client.get_stations())
    rows = build_default_aggregator().staleness_listing(
        stations, _now(), station_type=station_type
    )
    render_staleness(rows)
    render_anomalies(state.loader.anomalies)


@app.command("velocity")
def velocity_command(
    ctx: typer.Context,
    cycle_id: int = typer.Argument(..., help="Fumigation cycle identifier."),
) -> None:
    """Show completion pace for one fumigation cycle."""
    state = _get_state(ctx)
    cycles = state.loader.load_cycles(state.client.get_cycles())
    cycle = next((item for item in cycles if item.id == cycle_id), None)
    if cycle is None:
        _fail(f"Cycle {cycle_id} was not found.")
    rooms = state.loader.load_rooms(state.client.get_cycle_rooms(cycle_id))
    velocity = build_default_aggregator().cycle_velocity(cycle, rooms, _now())
    typer.secho(cycle.label, bold=True)
    render_velocity(velocity)
    render_anomalies(state.loader.anomalies)


@app.command("history")
def history_command(
    ctx: typer.Context,
    station_id: int = typer.Argument(..., help="Bait station identifier."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Inspections to fetch."),
) -> None:
    """Summarize the inspection history of one station."""
    state = _get_state(ctx)
    stations = state.loader.load_stations(state.client.get_stations())
    station = next((item for item in stations if item.id == station_id), None)
    if station is None:
        _fail(f"Station {station_id} was not found.")
    inspections = state.loader.load_inspections(
        state.client.get_station_inspections(
            station_id, limit=limit or state.config.inspection_limit
        )
    )
    history = build_default_aggregator().station_history(station, inspections, _now())
    render_history(history)
    render_anomalies(state.loader.anomalies)
