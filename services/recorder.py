"""Periodic sampling of an environment sensor into the measurement store."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Callable, Optional

from datastore.errors import MeasurementStoreError
from datastore.measurement_store import MeasurementStore, build_default_store
from models.records import now_micros
from services.sensors import EnvironmentSensor, build_sensor
from settings import get_settings

logger = logging.getLogger(__name__)


class Recorder:
    """Samples a sensor on a fixed period and appends each reading to the store."""

    def __init__(
        self,
        store: MeasurementStore,
        sensor: EnvironmentSensor,
        period: float = 60.0,
        clock: Callable[[], int] = now_micros,
    ) -> None:
        if period <= 0:
            raise ValueError("Sampling period must be positive.")
        self.store = store
        self.sensor = sensor
        self.period = period
        self._clock = clock
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._thread_lock = Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def sample_once(self) -> Optional[int]:
        """Take one reading and store it. Returns the new id, or None if it was skipped."""
        try:
            sample = self.sensor.measure()
        except Exception:  # noqa: BLE001 - a failed read only costs this tick
            logger.exception("Sensor read failed", extra={"sensor": self.sensor.name})
            return None

        meas_time = self._clock()
        try:
            measurement_id = self.store.insert(
                meas_time,
                temperature=sample.temperature,
                humidity=sample.humidity,
                pressure=sample.pressure,
                light_level=sample.light_level,
            )
        except MeasurementStoreError as exc:
            logger.error(
                "Could not store sample",
                extra={"sensor": self.sensor.name, "meas_time": meas_time, "reason": str(exc)},
            )
            return None

        logger.info(
            "Sample recorded",
            extra={
                "sensor": self.sensor.name,
                "measurement_id": measurement_id,
                "meas_time": meas_time,
            },
        )
        return measurement_id

    def run(self, stop_event: Optional[Event] = None, max_samples: Optional[int] = None) -> int:
        """Sample until ``stop_event`` is set or ``max_samples`` ticks have elapsed.

        The first sample is taken immediately. Returns how many samples were stored.
        """
        stop = stop_event if stop_event is not None else self._stop_event
        recorded = 0
        ticks = 0
        next_tick = time.monotonic()
        while not stop.is_set():
            if self.sample_once() is not None:
                recorded += 1
            ticks += 1
            if max_samples is not None and ticks >= max_samples:
                break
            next_tick += self.period
            stop.wait(max(0.0, next_tick - time.monotonic()))
        return recorded

    def start(self) -> None:
        with self._thread_lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = Thread(target=self.run, name="measurement-recorder", daemon=True)
            self._thread.start()
        logger.info("Recorder started", extra={"sensor": self.sensor.name})

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._thread_lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if thread is not None:
            thread.join(timeout)
            logger.info("Recorder stopped", extra={"sensor": self.sensor.name})


@lru_cache
def build_default_recorder(period: Optional[float] = None) -> Recorder:
    """Factory that wires the recorder to the default store and configured sensor."""
    settings = get_settings()
    return Recorder(
        store=build_default_store(),
        sensor=build_sensor(settings.sensor_kind),
        period=period or settings.measurement_period,
    )
