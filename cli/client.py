from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig
from models.records import Snapshot
from services.loader import SnapshotLoader

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _params(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class FumigationClient:
    """Read-only HTTP client for the fumigation records API."""

    def __init__(
        self,
        config: CLIConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def get_stations(
        self,
        type: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> List[Record]:
        flag = None if active is None else ("1" if active else "0")
        return self._get_list("/stations", _params(type=type, active=flag))

    def get_inspections(
        self,
        station_id: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        params = _params(station_id=station_id, limit=limit)
        params.update(_params(**{"from": date_from, "to": date_to}))
        return self._get_list("/inspections", params)

    def get_station_inspections(
        self,
        station_id: int,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        params = _params(limit=limit)
        params.update(_params(**{"from": date_from, "to": date_to}))
        rows = self._get_list(f"/stations/{station_id}/inspections", params)
        return [{"station_id": station_id, **row} for row in rows]

    def get_cycles(
        self,
        status: Optional[str] = None,
        year: Optional[int] = None,
    ) -> List[Record]:
        return self._get_list("/cycles", _params(status=status, year=year))

    def get_cycle_rooms(self, cycle_id: int, status: Optional[str] = None) -> List[Record]:
        rows = self._get_list(f"/cycles/{cycle_id}/rooms", _params(status=status))
        return [{"cycle_id": cycle_id, **row} for row in rows]

    def fetch_snapshot(
        self,
        loader: SnapshotLoader,
        inspection_limit: Optional[int] = None,
        cycle_id: Optional[int] = None,
    ) -> Snapshot:
        """Download every collection a report needs and normalize it.

        Rooms are fetched for ``cycle_id`` only when given, otherwise for every cycle.
        """
        limit = inspection_limit or self._config.inspection_limit
        stations = self.get_stations()
        inspections = self.get_inspections(limit=limit)
        cycles = self.get_cycles()
        rooms: List[Record] = []
        cycle_ids = [cycle_id] if cycle_id is not None else [
            cycle.get("id") for cycle in cycles if isinstance(cycle.get("id"), int)
        ]
        for current in cycle_ids:
            rooms.extend(self.get_cycle_rooms(current))
        logger.debug(
            "Fetched collaborator records",
            extra={"record_count": len(stations) + len(inspections) + len(cycles) + len(rooms)},
        )
        return loader.load_snapshot(
            stations=stations,
            inspections=inspections,
            cycles=cycles,
            rooms=rooms,
        )

    def _get_list(self, path: str, params: Dict[str, Any]) -> List[Record]:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter(f"Unexpected response payload from {path}.")
        return payload

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            if isinstance(data, dict):
                detail = data.get("detail") or data.get("error")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
