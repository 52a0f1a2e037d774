"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import MEAS_TIME_MAX, MEAS_TIME_MIN, Measurement


class MeasurementCreate(BaseModel):
    """Payload for storing one sensor sample."""

    meas_time: int = Field(
        ...,
        ge=MEAS_TIME_MIN,
        le=MEAS_TIME_MAX,
        description="Sample timestamp; the unit is deployment defined (epoch microseconds by default).",
    )
    temperature: Optional[float] = Field(default=None, allow_inf_nan=False)
    humidity: Optional[float] = Field(default=None, allow_inf_nan=False)
    pressure: Optional[float] = Field(default=None, allow_inf_nan=False)
    light_level: Optional[float] = Field(default=None, allow_inf_nan=False)


class MeasurementCreated(BaseModel):
    """Immediate response payload after a measurement is stored."""

    id: int = Field(..., ge=1, description="Identifier assigned by the store.")


class MeasurementOut(BaseModel):
    """A stored measurement. Unsensed fields are null."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    meas_time: int
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    light_level: Optional[float] = None

    @classmethod
    def from_record(cls, record: Measurement) -> "MeasurementOut":
        return cls.model_validate(record)
