from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
import typer
from typer.testing import CliRunner

from cli.app import app, parse_time_bound
from cli.config import CLIConfig, load_config
from datastore.measurement_store import MeasurementStore, build_default_store
from settings import get_settings


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.inserted: List[Dict[str, Any]] = []
        self.queries: List[tuple[int, int]] = []
        self.rows: List[Dict[str, Any]] = [
            {
                "id": 2,
                "meas_time": 50,
                "temperature": None,
                "humidity": 40.0,
                "pressure": None,
                "light_level": None,
            },
            {
                "id": 1,
                "meas_time": 100,
                "temperature": 21.5,
                "humidity": None,
                "pressure": None,
                "light_level": None,
            },
        ]
        self.closed = False

    def insert_measurement(
        self,
        meas_time: int,
        temperature: Optional[float] = None,
        humidity: Optional[float] = None,
        pressure: Optional[float] = None,
        light_level: Optional[float] = None,
    ) -> int:
        self.inserted.append(
            {
                "meas_time": meas_time,
                "temperature": temperature,
                "humidity": humidity,
                "pressure": pressure,
                "light_level": light_level,
            }
        )
        return len(self.inserted)

    def query_range(self, start_time: int, end_time: int) -> List[Dict[str, Any]]:
        self.queries.append((start_time, end_time))
        return [row for row in self.rows if start_time <= row["meas_time"] <= end_time]

    def get_measurement(self, measurement_id: int) -> Dict[str, Any]:
        return next(row for row in self.rows if row["id"] == measurement_id)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_insert_with_explicit_time(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(
        app, ["insert", "--meas-time", "100", "--temperature", "21.5", "--light-level", "2.4"]
    )

    assert result.exit_code == 0
    assert "Measurement stored. id=1 meas_time=100" in result.stdout
    assert stub.inserted == [
        {
            "meas_time": 100,
            "temperature": 21.5,
            "humidity": None,
            "pressure": None,
            "light_level": 2.4,
        }
    ]
    assert stub.closed is True


def test_insert_defaults_to_now(runner: CliRunner, stub: StubClient, monkeypatch) -> None:
    monkeypatch.setattr("cli.app.now_micros", lambda: 1_700_000_000_000_000)

    result = runner.invoke(app, ["insert", "--humidity", "40"])

    assert result.exit_code == 0
    assert stub.inserted[0]["meas_time"] == 1_700_000_000_000_000
    assert stub.inserted[0]["humidity"] == 40.0


def test_query_renders_table(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["query", "0", "100"])

    assert result.exit_code == 0
    assert stub.queries == [(0, 100)]
    assert "Measurements (2)" in result.stdout
    lines = result.stdout.splitlines()
    header = next(line for line in lines if line.startswith("id"))
    assert header.split() == ["id", "meas_time", "temperature", "humidity", "pressure", "light_level"]
    assert lines.index(header) < next(i for i, line in enumerate(lines) if line.startswith("2 "))


def test_query_accepts_iso_bounds(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(
        app, ["query", "1970-01-01T00:00:00Z", "1970-01-01T00:00:00.000100Z", "--as-datetime"]
    )

    assert result.exit_code == 0
    assert stub.queries == [(0, 100)]
    assert "measured_at" in result.stdout
    assert "1970-01-01T00:00:00.000050+00:00" in result.stdout


def test_query_with_no_rows(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["query", "200", "300"])

    assert result.exit_code == 0
    assert "No measurements in range." in result.stdout


def test_get_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["get", "1"])

    assert result.exit_code == 0
    assert "temperature: 21.5" in result.stdout
    assert "humidity: -" in result.stdout


def test_parse_time_bound_rejects_garbage() -> None:
    assert parse_time_bound(" 42 ") == 42
    with pytest.raises(typer.BadParameter):
        parse_time_bound("yesterday")


def test_record_writes_stub_samples(runner: CliRunner, stub: StubClient, tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "recorded.db"
    monkeypatch.delenv("SENSOR_KIND", raising=False)
    monkeypatch.setattr("cli.app.configure_logging", lambda: None)
    get_settings.cache_clear()
    build_default_store.cache_clear()
    try:
        result = runner.invoke(
            app,
            ["record", "--count", "2", "--period", "0.01", "--database-url", f"sqlite:///{db_path}"],
        )
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 0, result.stdout
    assert "Recorded 2 of 2 samples" in result.stdout

    store = MeasurementStore(f"sqlite:///{db_path}")
    try:
        rows = list(store.query_range(-(2**63), 2**63 - 1))
    finally:
        store.close()
    assert [row.id for row in rows] == [1, 2]
    assert all(row.pressure == 101325.0 and row.humidity is None for row in rows)


def test_record_rejects_unknown_sensor(runner: CliRunner, stub: StubClient, monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_KIND", "bmp280")
    monkeypatch.setattr("cli.app.configure_logging", lambda: None)
    get_settings.cache_clear()
    try:
        result = runner.invoke(app, ["record", "--database-url", "sqlite://"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code != 0


def test_load_config_prefers_flags_then_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://store.local:9000/")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")

    from_env = load_config()
    from_flags = load_config(base_url="http://other:1/", timeout=2.0)

    assert from_env == CLIConfig(base_url="http://store.local:9000", timeout=30.0)
    assert from_flags == CLIConfig(base_url="http://other:1", timeout=2.0)

    monkeypatch.setenv("CLI_TIMEOUT", "-5")
    assert load_config().timeout == 30.0
    monkeypatch.setenv("CLI_TIMEOUT", "4.5")
    assert load_config().timeout == 4.5
