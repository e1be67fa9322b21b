"""agentwire check-remote — test the configured SSH endpoint."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from agentwire.config import ConfigError, load_config
from agentwire.engine.runner import remote_endpoint
from agentwire.errors import TransportError
from agentwire.transport.remote import check_connection


@click.command("check-remote")
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
def check_remote(config_file: str | None) -> None:
    """Connect to the remote host, run a no-op and report the latency."""
    try:
        config = load_config(Path(config_file) if config_file else None)
        endpoint = remote_endpoint(config)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(f"Checking {endpoint.label} (port {endpoint.port})...")
    try:
        latency_ms = asyncio.run(check_connection(endpoint))
    except TransportError as exc:
        click.echo(f"Failed [{exc.kind}]: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(f"OK, {latency_ms:.0f} ms")
