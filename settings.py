from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_DATABASE_URL_ENV = "DATABASE_URL"
_LOCK_TIMEOUT_ENV = "STORE_LOCK_TIMEOUT_SECS"
_PAGE_SIZE_ENV = "QUERY_PAGE_SIZE"
_PERIOD_ENV = "MEASUREMENT_PERIOD_SECS"
_SENSOR_KIND_ENV = "SENSOR_KIND"
_RECORDER_ENABLED_ENV = "RECORDER_ENABLED"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    lock_timeout: float
    query_page_size: int
    measurement_period: float
    sensor_kind: str
    recorder_enabled: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


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


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
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


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


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
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/measurements.db"),
        lock_timeout=_read_positive_float(_LOCK_TIMEOUT_ENV, 10.0),
        query_page_size=_read_positive_int(_PAGE_SIZE_ENV, 500),
        measurement_period=_read_positive_float(_PERIOD_ENV, 60.0),
        sensor_kind=_read_str_env(_SENSOR_KIND_ENV, "stub").lower(),
        recorder_enabled=_read_bool(_RECORDER_ENABLED_ENV, False),
        log_level=_read_log_level("INFO"),
    )
