"""SQLAlchemy mapping for the ``measurements`` table."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Float, Index, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from models.records import Measurement

# SQLite only aliases the rowid (and honours AUTOINCREMENT) for a column
# declared exactly ``INTEGER PRIMARY KEY``; rowids are 64-bit regardless.
_IdType = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class MeasurementRow(Base):
    __tablename__ = "measurements"
    __table_args__ = (
        Index("ix_measurements_meas_time_id", "meas_time", "id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(_IdType, primary_key=True, autoincrement=True)
    meas_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    temperature: Mapped[Optional[float]] = mapped_column(Float(precision=53))
    humidity: Mapped[Optional[float]] = mapped_column(Float(precision=53))
    pressure: Mapped[Optional[float]] = mapped_column(Float(precision=53))
    light_level: Mapped[Optional[float]] = mapped_column(Float(precision=53))

    def to_record(self) -> Measurement:
        return Measurement(
            id=self.id,
            meas_time=self.meas_time,
            temperature=self.temperature,
            humidity=self.humidity,
            pressure=self.pressure,
            light_level=self.light_level,
        )
