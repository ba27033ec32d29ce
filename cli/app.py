from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
import uvicorn

from app.main import create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_command_result, render_status
from logging_config import configure_logging
from settings import ConfigurationError, get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Run the telemetry relay or steer a running instance.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Relay control URL (defaults to RELAY_BASE_URL env or http://localhost:8080).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the relay to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Override the configured bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Override the configured HTTP port."),
) -> None:
    """Run the relay: MQTT subscription, InfluxDB forwarding and control endpoint."""
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    configure_logging()
    uvicorn.run(
        create_app(),
        host=host or settings.http_host,
        port=port or settings.http_port,
        log_config=None,
    )


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the write gate and the most recent reading."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("set-writes")
def set_writes_command(
    ctx: typer.Context,
    enabled: bool = typer.Option(..., "--enable/--disable", help="Turn database writes on or off."),
    password: str = typer.Option(
        ...,
        "--password",
        "-p",
        prompt=True,
        hide_input=True,
        envvar="RELAY_WRITE_PASSWORD",
        help="Shared secret configured on the relay.",
    ),
) -> None:
    """Enable or disable database writes on a running relay."""
    state = _get_state(ctx)
    render_command_result(state.client.set_writes(enabled, password))
