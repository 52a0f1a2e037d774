"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

_MICROS_PER_SECOND = 1_000_000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MEAS_TIME_MIN = -(2**63)
MEAS_TIME_MAX = 2**63 - 1


@dataclass(frozen=True, slots=True)
class Measurement:
    """A stored sensor sample. Absent scalars are ``None``, never zero."""

    id: int
    meas_time: int
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    light_level: Optional[float] = None


@dataclass(frozen=True, slots=True)
class SensorSample:
    """A reading produced by a sensor before the store assigns it an id."""

    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    light_level: Optional[float] = None


def timestamp_micros(moment: datetime) -> int:
    """Convert a datetime to microseconds since the Unix epoch.

    Naive datetimes are treated as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * _MICROS_PER_SECOND + delta.microseconds


def datetime_from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value)


def now_micros() -> int:
    return timestamp_micros(datetime.now(timezone.utc))
