"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import MeasurementCreate, MeasurementCreated, MeasurementOut
from datastore.errors import ConstraintViolation, InvalidArgument, StorageFailure
from datastore.measurement_store import MeasurementStore, build_default_store
from models.records import MEAS_TIME_MAX, MEAS_TIME_MIN

router = APIRouter()


def get_store() -> MeasurementStore:
    return build_default_store()


def _storage_unavailable(exc: StorageFailure) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


@router.post(
    "/measurements",
    status_code=status.HTTP_201_CREATED,
    response_model=MeasurementCreated,
    summary="Store one sensor sample.",
)
def create_measurement(
    payload: MeasurementCreate,
    store: MeasurementStore = Depends(get_store),
) -> MeasurementCreated:
    try:
        measurement_id = store.insert(
            payload.meas_time,
            temperature=payload.temperature,
            humidity=payload.humidity,
            pressure=payload.pressure,
            light_level=payload.light_level,
        )
    except InvalidArgument as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ConstraintViolation as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return MeasurementCreated(id=measurement_id)


@router.get(
    "/measurements",
    response_model=list[MeasurementOut],
    summary="List measurements whose meas_time falls in [start_time, end_time].",
)
def list_measurements(
    start_time: int = Query(..., ge=MEAS_TIME_MIN, le=MEAS_TIME_MAX),
    end_time: int = Query(..., ge=MEAS_TIME_MIN, le=MEAS_TIME_MAX),
    store: MeasurementStore = Depends(get_store),
) -> list[MeasurementOut]:
    try:
        measurements = store.query_range(start_time, end_time)
        return [MeasurementOut.from_record(record) for record in measurements]
    except InvalidArgument as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc


@router.get(
    "/measurements/{measurement_id}",
    response_model=MeasurementOut,
    summary="Fetch a single measurement by id.",
)
def get_measurement(
    measurement_id: int,
    store: MeasurementStore = Depends(get_store),
) -> MeasurementOut:
    try:
        record = store.get(measurement_id)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Measurement {measurement_id} not found.",
        )
    return MeasurementOut.from_record(record)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
