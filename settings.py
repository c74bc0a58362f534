from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_RANKING_LIMIT_ENV = "REPORT_RANKING_LIMIT"
_ALERT_LIMIT_ENV = "REPORT_ALERT_LIMIT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    ranking_limit: int
    alert_limit: int
    log_level: str


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        ranking_limit=_read_positive_int(_RANKING_LIMIT_ENV, 10),
        alert_limit=_read_positive_int(_ALERT_LIMIT_ENV, 20),
        log_level=_read_log_level("INFO"),
    )
