from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.render import status_lines
from settings import ConfigurationError, Settings

STATUS_PAGE = """<!DOCTYPE html>
<html>
<body>
<p>Database writes enabled: true </p>
<p><a href="http://grafana.local">View graphs</a></p>
<p>Last measurement: time: 2023-11-14 22:13:20 UTC, T: 21.3 °C, DP: 12.1 °C, H: 55.0 %, CO2: 410.5 ppm, pCount: 3.0 </p>
</body>
</html>
"""


class StubClient:
    def __init__(self, config, command_response: str = "Writes enabled: false") -> None:
        self.config = config
        self.command_response = command_response
        self.commands: List[tuple[bool, str]] = []
        self.closed = False

    def get_status(self) -> str:
        return STATUS_PAGE

    def set_writes(self, enabled: bool, password: str) -> str:
        self.commands.append((enabled, password))
        return self.command_response

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def _settings() -> Settings:
    return Settings(
        mqtt_broker="broker.local",
        mqtt_topic="sensors/env",
        mqtt_user="relay",
        mqtt_password="mqtt-pass",
        db_url="http://localhost:8086",
        db_org="home",
        db_bucket="sensors",
        db_token="token",
        db_measurement="environment",
        write_password="s3cret",
    )


def test_status_lines_strip_markup() -> None:
    assert status_lines(STATUS_PAGE) == [
        "Database writes enabled: true",
        "View graphs",
        "Last measurement: time: 2023-11-14 22:13:20 UTC, T: 21.3 °C, DP: 12.1 °C, "
        "H: 55.0 %, CO2: 410.5 ppm, pCount: 3.0",
    ]


def test_status_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://relay.local:8080/", "status"])

    assert result.exit_code == 0
    assert "Relay Status" in result.stdout
    assert "Database writes enabled: true" in result.stdout
    assert "Last measurement:" in result.stdout
    assert stub.config.base_url == "http://relay.local:8080"
    assert stub.closed is True


def test_set_writes_disable(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["set-writes", "--disable", "--password", "s3cret"])

    assert result.exit_code == 0
    assert "Writes enabled: false" in result.stdout
    assert stub.commands == [(False, "s3cret")]
    assert stub.closed is True


def test_set_writes_wrong_password_fails(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None, command_response="Wrong password")
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["set-writes", "--enable", "-p", "guess"])

    assert result.exit_code == 1
    assert "Wrong password" in result.output
    assert stub.commands == [(True, "guess")]


def test_serve_exits_on_configuration_error(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    served: List[Dict[str, Any]] = []

    def broken_settings() -> Settings:
        raise ConfigurationError("Missing required config values: mqtt_broker")

    monkeypatch.setattr("cli.app.get_settings", broken_settings)
    monkeypatch.setattr("cli.app.uvicorn.run", lambda *args, **kwargs: served.append(kwargs))

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert served == []


def test_serve_runs_app_with_configured_address(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    served: List[Dict[str, Any]] = []

    def fake_run(application, **kwargs) -> None:
        served.append({"app": application, **kwargs})

    monkeypatch.setattr("cli.app.get_settings", _settings)
    monkeypatch.setattr("cli.app.uvicorn.run", fake_run)

    result = runner.invoke(app, ["serve", "--port", "9090"])

    assert result.exit_code == 0
    assert len(served) == 1
    assert served[0]["host"] == "0.0.0.0"
    assert served[0]["port"] == 9090
    assert served[0]["app"].title == "Telemetry Relay"
