from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:3000/v1/fumigation"
DEFAULT_TIMEOUT = 30.0
DEFAULT_INSPECTION_LIMIT = 2000

_BASE_URL_ENV = "API_BASE_URL"
_TIMEOUT_ENV = "API_TIMEOUT"
_INSPECTION_LIMIT_ENV = "REPORT_INSPECTION_LIMIT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    inspection_limit: int = DEFAULT_INSPECTION_LIMIT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    inspection_limit: Optional[int] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    if inspection_limit is None:
        inspection_limit = _read_int(os.getenv(_INSPECTION_LIMIT_ENV), DEFAULT_INSPECTION_LIMIT)
    return CLIConfig(
        base_url=url.rstrip("/"),
        timeout=timeout,
        inspection_limit=inspection_limit,
    )
