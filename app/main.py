from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.measurement_store import build_default_store
from logging_config import configure_logging
from services.recorder import build_default_recorder
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    store = build_default_store()
    recorder = build_default_recorder() if get_settings().recorder_enabled else None
    if recorder is not None:
        recorder.start()
    try:
        yield
    finally:
        if recorder is not None:
            recorder.stop(timeout=5.0)
            build_default_recorder.cache_clear()
        store.close()
        build_default_store.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Enviro Measurement Store",
        description="Time-series store for environmental sensor readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
