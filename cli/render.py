from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer

from models.records import datetime_from_micros

_COLUMNS = ("id", "meas_time", "temperature", "humidity", "pressure", "light_level")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def _as_datetime(meas_time: Any) -> str:
    if not isinstance(meas_time, int):
        return "-"
    try:
        return datetime_from_micros(meas_time).isoformat()
    except OverflowError:
        return "-"


def render_measurement(payload: Dict[str, Any], as_datetime: bool = False) -> None:
    echo_heading("Measurement")
    pairs = [(column, _cell(payload.get(column))) for column in _COLUMNS]
    if as_datetime:
        pairs.insert(2, ("measured_at", _as_datetime(payload.get("meas_time"))))
    echo_key_values(pairs)


def render_measurements(rows: Sequence[Dict[str, Any]], as_datetime: bool = False) -> None:
    echo_heading(f"Measurements ({len(rows)})")
    if not rows:
        typer.echo("No measurements in range.")
        return

    columns = list(_COLUMNS)
    if as_datetime:
        columns.insert(2, "measured_at")
    table = [
        [
            _as_datetime(row.get("meas_time")) if column == "measured_at" else _cell(row.get(column))
            for column in columns
        ]
        for row in rows
    ]
    widths = [
        max(len(column), *(len(line[index]) for line in table))
        for index, column in enumerate(columns)
    ]
    typer.echo("  ".join(column.ljust(width) for column, width in zip(columns, widths)))
    for line in table:
        typer.echo("  ".join(cell.ljust(width) for cell, width in zip(line, widths)))
