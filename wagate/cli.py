"""
Command-line interface for wagate.
"""

from __future__ import annotations

import json
import os

import click
import requests

from wagate.client.client import DEFAULT_URL, GatewayClient, GatewayClientError
from wagate.common.config import VARIANTS, Config
from wagate.common.exceptions import StoreError
from wagate.server import start_server
from wagate.server.persistence import build_store


@click.group()
def cli() -> None:
    """Wagate messaging gateway CLI"""


@cli.command()
@click.option(
    "--variant",
    type=click.Choice(sorted(VARIANTS)),
    default=None,
    help="Deployment profile (default: from WAGATE_VARIANT env or server)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind server to (default: from WAGATE_HOST env or 0.0.0.0)",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Port to bind server to (default: from WAGATE_PORT/PORT env or 3000)",
)
@click.option(
    "--client",
    "client_factory",
    default=None,
    help="Messaging client factory as module:callable (default: neonize adapter)",
)
@click.option(
    "--auth-dir",
    default=None,
    help="Directory for file-backed credentials",
)
def serve(
    variant: str | None,
    host: str | None,
    port: int | None,
    client_factory: str | None,
    auth_dir: str | None,
) -> None:
    """Start the gateway server"""
    # Set environment variables before building the config
    if host:
        os.environ["WAGATE_HOST"] = host
    if port:
        os.environ["WAGATE_PORT"] = str(port)
    if client_factory:
        os.environ["WAGATE_CLIENT_FACTORY"] = client_factory
    if auth_dir:
        os.environ["WAGATE_AUTH_DIR"] = auth_dir

    try:
        config = Config(variant)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if not config.CLIENT_FACTORY:
        msg = "ERROR: set WAGATE_CLIENT_FACTORY or pass --client module:callable."
        raise click.ClickException(msg)

    start_server(config)


@cli.command("clear-auth")
@click.option("--variant", type=click.Choice(sorted(VARIANTS)), default=None)
@click.option("--auth-dir", default=None, help="Directory for file-backed credentials")
@click.confirmation_option(prompt="Delete all stored credentials?")
def clear_auth(variant: str | None, auth_dir: str | None) -> None:
    """Delete stored credentials without a running server"""
    if auth_dir:
        os.environ["WAGATE_AUTH_DIR"] = auth_dir
    store = build_store(Config(variant))
    try:
        store.delete_all()
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    click.echo("Credentials cleared")


@cli.command()
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Gateway base URL")
@click.option("--prefix", default="", help="Route prefix, e.g. /api")
def status(url: str, prefix: str) -> None:
    """Show the status of a running gateway"""
    client = GatewayClient(url, prefix)
    try:
        data = client.status()
    except (GatewayClientError, requests.RequestException) as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(data, indent=2))


@cli.command()
@click.argument("phone")
@click.argument("message")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Gateway base URL")
@click.option("--prefix", default="", help="Route prefix, e.g. /api")
def send(phone: str, message: str, url: str, prefix: str) -> None:
    """Send a text message through a running gateway"""
    client = GatewayClient(url, prefix)
    try:
        data = client.send_message(phone, message)
    except GatewayClientError as e:
        raise click.ClickException(f"{e.code or e.status_code}: {e}") from e
    except requests.RequestException as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Sent to {data['to']} (id {data['messageId']})")


if __name__ == "__main__":
    cli()
