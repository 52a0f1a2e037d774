from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the measurement store API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def insert_measurement(
        self,
        meas_time: int,
        temperature: Optional[float] = None,
        humidity: Optional[float] = None,
        pressure: Optional[float] = None,
        light_level: Optional[float] = None,
    ) -> int:
        payload: Dict[str, Any] = {"meas_time": meas_time}
        for key, value in (
            ("temperature", temperature),
            ("humidity", humidity),
            ("pressure", pressure),
            ("light_level", light_level),
        ):
            if value is not None:
                payload[key] = value

        try:
            response = self._client.post("/measurements", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        measurement_id = response.json().get("id")
        if not isinstance(measurement_id, int):
            raise typer.BadParameter("Unexpected response payload when storing measurement.")
        return measurement_id

    def query_range(self, start_time: int, end_time: int) -> List[Dict[str, Any]]:
        try:
            response = self._client.get(
                "/measurements",
                params={"start_time": start_time, "end_time": end_time},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when querying measurements.")
        return payload

    def get_measurement(self, measurement_id: int) -> Dict[str, Any]:
        try:
            response = self._client.get(f"/measurements/{measurement_id}")
            if response.status_code == 404:
                raise typer.BadParameter(f"Measurement {measurement_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    def _handle_transport_error(self, exc: httpx.TransportError) -> None:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
