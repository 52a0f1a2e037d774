from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_measurement, render_measurements
from datastore.errors import StorageFailure
from datastore.measurement_store import build_default_store
from logging_config import configure_logging
from models.records import now_micros, timestamp_micros
from services.recorder import Recorder
from services.sensors import build_sensor
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for recording and inspecting environmental measurements.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def parse_time_bound(value: str) -> int:
    """Accept a raw integer ``meas_time`` or an ISO-8601 datetime (as epoch microseconds)."""
    candidate = value.strip()
    try:
        return int(candidate)
    except ValueError:
        pass

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise typer.BadParameter(
            f"{value!r} is neither an integer nor an ISO-8601 datetime."
        ) from exc
    return timestamp_micros(parsed)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Measurement API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("insert")
def insert_command(
    ctx: typer.Context,
    meas_time: Optional[str] = typer.Option(
        None,
        "--meas-time",
        "-t",
        help="Integer timestamp or ISO-8601 datetime (defaults to now, in epoch microseconds).",
    ),
    temperature: Optional[float] = typer.Option(None, "--temperature"),
    humidity: Optional[float] = typer.Option(None, "--humidity"),
    pressure: Optional[float] = typer.Option(None, "--pressure"),
    light_level: Optional[float] = typer.Option(None, "--light-level"),
) -> None:
    """Store one measurement through the API."""
    state = _get_state(ctx)
    timestamp = parse_time_bound(meas_time) if meas_time is not None else now_micros()
    measurement_id = state.client.insert_measurement(
        timestamp,
        temperature=temperature,
        humidity=humidity,
        pressure=pressure,
        light_level=light_level,
    )
    typer.secho(
        f"Measurement stored. id={measurement_id} meas_time={timestamp}",
        fg=typer.colors.GREEN,
    )


@app.command("query")
def query_command(
    ctx: typer.Context,
    start: str = typer.Argument(..., help="Inclusive lower bound (integer or ISO-8601)."),
    end: str = typer.Argument(..., help="Inclusive upper bound (integer or ISO-8601)."),
    as_datetime: bool = typer.Option(
        False,
        "--as-datetime",
        help="Also show meas_time interpreted as epoch microseconds (UTC).",
    ),
) -> None:
    """List measurements whose meas_time falls within [START, END]."""
    state = _get_state(ctx)
    rows = state.client.query_range(parse_time_bound(start), parse_time_bound(end))
    render_measurements(rows, as_datetime=as_datetime)


@app.command("get")
def get_command(
    ctx: typer.Context,
    measurement_id: int = typer.Argument(..., help="Identifier returned by insert."),
    as_datetime: bool = typer.Option(False, "--as-datetime"),
) -> None:
    """Show a single measurement."""
    state = _get_state(ctx)
    render_measurement(state.client.get_measurement(measurement_id), as_datetime=as_datetime)


@app.command("record")
def record_command(
    count: int = typer.Option(1, "--count", "-n", min=1, help="Number of samples to take."),
    period: Optional[float] = typer.Option(
        None,
        "--period",
        min=0.0,
        help="Seconds between samples (defaults to MEASUREMENT_PERIOD_SECS).",
    ),
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="Store location (defaults to DATABASE_URL).",
    ),
) -> None:
    """Sample the configured sensor directly into the local store."""
    configure_logging()
    settings = get_settings()
    try:
        sensor = build_sensor(settings.sensor_kind)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        store = build_default_store(database_url)
    except StorageFailure as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    recorder = Recorder(
        store=store,
        sensor=sensor,
        period=period or settings.measurement_period,
    )
    try:
        recorded = recorder.run(max_samples=count)
    finally:
        store.close()
        build_default_store.cache_clear()

    color = typer.colors.GREEN if recorded == count else typer.colors.YELLOW
    typer.secho(f"Recorded {recorded} of {count} samples into {store.database_url}.", fg=color)
    if recorded < count:
        raise typer.Exit(code=1)
