"""Unit tests for the sensor recorder and sensor factory."""

from __future__ import annotations

import itertools
import logging
import time
from threading import Event
from typing import Iterator

import pytest

from datastore.measurement_store import MeasurementStore
from models.records import Measurement, SensorSample
from services.recorder import Recorder
from services.sensors import StubEnvironmentSensor, build_sensor


class FlakySensor:
    name = "flaky"

    def __init__(self) -> None:
        self.calls = 0

    def measure(self) -> SensorSample:
        self.calls += 1
        if self.calls % 2 == 0:
            raise OSError("I2C bus timed out")
        return SensorSample(temperature=20.0 + self.calls)


@pytest.fixture
def store() -> Iterator[MeasurementStore]:
    memory_store = MeasurementStore("sqlite://")
    yield memory_store
    memory_store.close()


def _counting_clock(start: int = 1_000) -> Iterator[int]:
    return itertools.count(start, 10)


def test_build_sensor_returns_stub() -> None:
    sensor = build_sensor(" Stub ")

    assert isinstance(sensor, StubEnvironmentSensor)
    assert sensor.measure() == SensorSample(temperature=24.0, pressure=101325.0, light_level=2.4)


def test_build_sensor_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="bmp280"):
        build_sensor("bmp280")


def test_sample_once_stores_stub_reading(store: MeasurementStore) -> None:
    clock = _counting_clock()
    recorder = Recorder(store, StubEnvironmentSensor(), period=1.0, clock=lambda: next(clock))

    measurement_id = recorder.sample_once()

    assert measurement_id == 1
    assert list(store.query_range(0, 10_000)) == [
        Measurement(
            id=1,
            meas_time=1_000,
            temperature=24.0,
            humidity=None,
            pressure=101325.0,
            light_level=2.4,
        )
    ]


def test_sensor_failure_skips_the_tick(store: MeasurementStore, caplog) -> None:
    caplog.set_level(logging.INFO)
    clock = _counting_clock()
    recorder = Recorder(store, FlakySensor(), period=0.01, clock=lambda: next(clock))

    recorded = recorder.run(max_samples=4)

    assert recorded == 2
    assert [m.temperature for m in store.query_range(0, 10_000)] == [21.0, 23.0]
    assert "Sensor read failed" in caplog.text


def test_storage_failure_is_logged_and_skipped(caplog) -> None:
    caplog.set_level(logging.INFO)
    closed = MeasurementStore("sqlite://")
    closed.close()
    recorder = Recorder(closed, StubEnvironmentSensor(), period=1.0)

    assert recorder.sample_once() is None
    assert "Could not store sample" in caplog.text


def test_run_stops_when_event_is_set(store: MeasurementStore) -> None:
    stop = Event()
    stop.set()
    recorder = Recorder(store, StubEnvironmentSensor(), period=0.01)

    assert recorder.run(stop_event=stop) == 0
    assert store.count() == 0


def test_start_and_stop_background_thread(store: MeasurementStore) -> None:
    recorder = Recorder(store, StubEnvironmentSensor(), period=0.01)

    recorder.start()
    try:
        deadline = time.monotonic() + 5.0
        while store.count() < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        recorder.stop(timeout=5.0)

    assert recorder.running is False
    recorded = store.count()
    assert recorded >= 3
    time.sleep(0.05)
    assert store.count() == recorded


def test_period_must_be_positive(store: MeasurementStore) -> None:
    with pytest.raises(ValueError):
        Recorder(store, StubEnvironmentSensor(), period=0)


class NanSensor:
    name = "nan"

    def measure(self) -> SensorSample:
        return SensorSample(temperature=float("nan"), pressure=101325.0)


def test_rejected_sample_is_logged_and_skipped(store: MeasurementStore, caplog) -> None:
    caplog.set_level(logging.INFO)
    recorder = Recorder(store, NanSensor(), period=0.01)

    assert recorder.sample_once() is None
    assert recorder.run(max_samples=3) == 0
    assert store.count() == 0
    failures = [r for r in caplog.records if r.getMessage() == "Could not store sample"]
    assert len(failures) == 4
    assert all("must not be NaN" in r.reason for r in failures)


def test_background_thread_survives_rejected_samples(store: MeasurementStore) -> None:
    recorder = Recorder(store, NanSensor(), period=0.01)

    recorder.start()
    try:
        time.sleep(0.1)
        assert recorder.running is True
    finally:
        recorder.stop(timeout=5.0)
