from __future__ import annotations

import logging
import math
import numbers
from contextlib import contextmanager, nullcontext
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import ContextManager, Iterator, Optional

from sqlalchemy import and_, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from datastore.errors import ConstraintViolation, InvalidArgument, StorageFailure
from datastore.tables import Base, MeasurementRow
from models.records import MEAS_TIME_MAX, MEAS_TIME_MIN, Measurement
from settings import get_settings

logger = logging.getLogger(__name__)


class MeasurementRange:
    """Lazy view over the measurements whose ``meas_time`` lies in a closed interval.

    Creating the range only records the highest id present in the table;
    rows are read when the range is iterated. Every iteration re-reads the
    table page by page, ordered by ``(meas_time, id)``, and ignores records
    inserted after the range was created, so iterating twice yields the same
    sequence. Read failures raise :class:`StorageFailure` mid-iteration rather
    than ending the sequence early.
    """

    def __init__(
        self,
        store: "MeasurementStore",
        start_time: int,
        end_time: int,
        snapshot_id: int,
    ) -> None:
        self._store = store
        self.start_time = start_time
        self.end_time = end_time
        self.snapshot_id = snapshot_id

    def __iter__(self) -> Iterator[Measurement]:
        if self.snapshot_id <= 0:
            return
        after: Optional[tuple[int, int]] = None
        row_count = 0
        while True:
            page = self._store._fetch_page(
                self.start_time, self.end_time, self.snapshot_id, after
            )
            yield from page
            row_count += len(page)
            if len(page) < self._store.page_size:
                break
            last = page[-1]
            after = (last.meas_time, last.id)
        logger.debug(
            "Measurement range read",
            extra={
                "start_time": self.start_time,
                "end_time": self.end_time,
                "row_count": row_count,
            },
        )

    def __repr__(self) -> str:
        return (
            f"MeasurementRange(start_time={self.start_time}, end_time={self.end_time}, "
            f"snapshot_id={self.snapshot_id})"
        )


class MeasurementStore:
    """Single-table time-series store for environmental measurements.

    ``id`` values are assigned by the database under the store's write lock
    and are strictly increasing for the lifetime of the table; SQLite's
    AUTOINCREMENT keeps them from being reissued after a delete.
    """

    def __init__(
        self,
        database_url: str = "sqlite://",
        lock_timeout: float = 10.0,
        page_size: int = 500,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive.")
        url = make_url(database_url)
        self.database_url = url.render_as_string(hide_password=True)
        self.lock_timeout = lock_timeout
        self.page_size = page_size
        self._lock = Lock()
        self._closed = False
        self._shared_connection = _is_memory_sqlite(url)
        self.engine = _build_engine(url, lock_timeout, self._shared_connection)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(self.engine)
            self._last_id = self._load_last_id()
        except SQLAlchemyError as exc:
            self.engine.dispose()
            raise StorageFailure(f"Could not open measurement store: {exc}") from exc
        logger.info(
            "Measurement store opened",
            extra={"database_url": self.database_url, "measurement_id": self._last_id},
        )

    @property
    def last_id(self) -> int:
        """Watermark for id monotonicity checks.

        The highest id this instance has assigned, or the highest id present in
        the table when it was opened (0 for an empty table). Ids of deleted rows
        are not reflected after a reopen, although they are still never reissued.
        """
        return self._last_id

    def insert(
        self,
        meas_time: int,
        temperature: Optional[float] = None,
        humidity: Optional[float] = None,
        pressure: Optional[float] = None,
        light_level: Optional[float] = None,
    ) -> int:
        if meas_time is None:
            raise ConstraintViolation("meas_time is required.")
        meas_time = _check_time("meas_time", meas_time)
        scalars = {
            "temperature": _check_scalar("temperature", temperature),
            "humidity": _check_scalar("humidity", humidity),
            "pressure": _check_scalar("pressure", pressure),
            "light_level": _check_scalar("light_level", light_level),
        }
        row = MeasurementRow(meas_time=meas_time, **scalars)

        with self._write_lock():
            self._ensure_open()
            try:
                with self._sessions.begin() as session:
                    session.add(row)
                    session.flush()
                    previous = session.scalar(
                        select(func.max(MeasurementRow.id)).where(MeasurementRow.id != row.id)
                    )
                    floor = max(previous or 0, self._last_id)
                    if row.id is None or row.id <= floor:
                        raise ConstraintViolation(
                            f"Assigned id {row.id} does not exceed last id {floor}."
                        )
            except IntegrityError as exc:
                raise ConstraintViolation(f"Measurement rejected by the database: {exc.orig}") from exc
            except SQLAlchemyError as exc:
                logger.error(
                    "Measurement insert failed",
                    extra={"meas_time": meas_time, "reason": str(exc)},
                )
                raise StorageFailure(f"Could not persist measurement: {exc}") from exc
            self._last_id = row.id

        logger.debug(
            "Measurement stored",
            extra={"measurement_id": row.id, "meas_time": meas_time},
        )
        return row.id

    def query_range(self, start_time: int, end_time: int) -> MeasurementRange:
        start_time = _check_time("start_time", start_time)
        end_time = _check_time("end_time", end_time)
        if start_time > end_time:
            raise InvalidArgument(
                f"start_time {start_time} is greater than end_time {end_time}."
            )
        return MeasurementRange(self, start_time, end_time, self._read_max_id())

    def get(self, measurement_id: int) -> Optional[Measurement]:
        with self._read_guard():
            self._ensure_open()
            try:
                with self._sessions() as session:
                    row = session.get(MeasurementRow, measurement_id)
                    return row.to_record() if row is not None else None
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not read measurement {measurement_id}: {exc}") from exc

    def delete(self, measurement_id: int) -> bool:
        """Remove one record. Its id is never handed out again."""
        with self._write_lock():
            self._ensure_open()
            try:
                with self._sessions.begin() as session:
                    row = session.get(MeasurementRow, measurement_id)
                    if row is None:
                        return False
                    session.delete(row)
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not delete measurement {measurement_id}: {exc}") from exc
        logger.info("Measurement deleted", extra={"measurement_id": measurement_id})
        return True

    def count(self) -> int:
        with self._read_guard():
            self._ensure_open()
            try:
                with self._sessions() as session:
                    return session.scalar(select(func.count()).select_from(MeasurementRow)) or 0
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not count measurements: {exc}") from exc

    def close(self) -> None:
        with self._write_lock():
            if self._closed:
                return
            self._closed = True
            self.engine.dispose()
        logger.info("Measurement store closed", extra={"database_url": self.database_url})

    def _fetch_page(
        self,
        start_time: int,
        end_time: int,
        snapshot_id: int,
        after: Optional[tuple[int, int]],
    ) -> list[Measurement]:
        stmt = (
            select(MeasurementRow)
            .where(
                MeasurementRow.meas_time.between(start_time, end_time),
                MeasurementRow.id <= snapshot_id,
            )
            .order_by(MeasurementRow.meas_time, MeasurementRow.id)
            .limit(self.page_size)
        )
        if after is not None:
            after_time, after_id = after
            stmt = stmt.where(
                or_(
                    MeasurementRow.meas_time > after_time,
                    and_(MeasurementRow.meas_time == after_time, MeasurementRow.id > after_id),
                )
            )

        with self._read_guard():
            self._ensure_open()
            try:
                with self._sessions() as session:
                    return [row.to_record() for row in session.scalars(stmt)]
            except SQLAlchemyError as exc:
                logger.error(
                    "Measurement range read failed",
                    extra={"start_time": start_time, "end_time": end_time, "reason": str(exc)},
                )
                raise StorageFailure(f"Could not read measurements: {exc}") from exc

    def _load_last_id(self) -> int:
        with self.engine.connect() as connection:
            return connection.execute(select(func.max(MeasurementRow.id))).scalar() or 0

    def _read_max_id(self) -> int:
        with self._read_guard():
            self._ensure_open()
            try:
                return self._load_last_id()
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not read measurements: {exc}") from exc

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageFailure("Measurement store is closed.")

    @contextmanager
    def _write_lock(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise StorageFailure(
                f"Timed out after {self.lock_timeout}s waiting for the store write lock."
            )
        try:
            yield
        finally:
            self._lock.release()

    def _read_guard(self) -> ContextManager[None]:
        # An in-memory database lives on one shared connection.
        if self._shared_connection:
            return self._write_lock()
        return nullcontext()


def _is_memory_sqlite(url: URL) -> bool:
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:")


def _enable_wal(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
    finally:
        cursor.close()


def _build_engine(url: URL, lock_timeout: float, shared_connection: bool) -> Engine:
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False, "timeout": lock_timeout}
    if shared_connection:
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)

    if url.database:
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, connect_args=connect_args)
    event.listen(engine, "connect", _enable_wal)
    return engine


def _check_time(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidArgument(f"{name} must be an integer, got {type(value).__name__}.")
    value = int(value)
    if not MEAS_TIME_MIN <= value <= MEAS_TIME_MAX:
        raise InvalidArgument(f"{name} {value} is outside the signed 64-bit range.")
    return value


def _check_scalar(name: str, value: object) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidArgument(f"{name} must be a real number, got {type(value).__name__}.")
    converted = float(value)
    if math.isnan(converted):
        raise InvalidArgument(f"{name} must not be NaN.")
    return converted


@lru_cache
def build_default_store(database_url: Optional[str] = None) -> MeasurementStore:
    settings = get_settings()
    url = settings.database_url if database_url is None else database_url
    return MeasurementStore(
        database_url=url,
        lock_timeout=settings.lock_timeout,
        page_size=settings.query_page_size,
    )
