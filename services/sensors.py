"""Sensor sources that feed the recorder."""

from __future__ import annotations

from typing import Protocol

from models.records import SensorSample


class EnvironmentSensor(Protocol):
    name: str

    def measure(self) -> SensorSample:
        ...


class StubEnvironmentSensor:
    """Fixed reading for hosts without the sensor board attached.

    The board has no humidity channel, so humidity is always absent.
    """

    name = "stub"

    def __init__(
        self,
        temperature: float = 24.0,
        pressure: float = 101325.0,
        light_level: float = 2.4,
    ) -> None:
        self._sample = SensorSample(
            temperature=temperature,
            pressure=pressure,
            light_level=light_level,
        )

    def measure(self) -> SensorSample:
        return self._sample


_SENSOR_KINDS = {
    StubEnvironmentSensor.name: StubEnvironmentSensor,
}


def build_sensor(kind: str) -> EnvironmentSensor:
    factory = _SENSOR_KINDS.get(kind.strip().lower())
    if factory is None:
        known = ", ".join(sorted(_SENSOR_KINDS))
        raise ValueError(f"Unknown sensor kind {kind!r}; expected one of: {known}.")
    return factory()
