"""Command-line interface for the SOCKS5 proxy server.

This module provides the command-line interface, handling:
- Option parsing, with every option backed by an environment variable
- Logging setup
- Server startup and shutdown
- Reporting of fatal bind errors

Example:
    # Run from command line:
    $ socks5-relay serve --host 127.0.0.1 --port 1080 --user intern --password password123
    $ LOG_FORMAT=json LOG_LEVEL=debug socks5-relay serve
"""

from pathlib import Path

import dns.inet
import typer
from loguru import logger
from rich.console import Console

from socks5_relay import __version__
from socks5_relay.core.config import (
    DEFAULT_HOST,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_USERNAME,
    LogFormat,
    LogLevel,
    ProxyConfig,
)
from socks5_relay.core.exceptions import ServerBindError
from socks5_relay.core.proxy import create_proxy_server, run_server
from socks5_relay.core.utils.log_config import configure_logging

console = Console()
app = typer.Typer(help="Minimal SOCKS5 proxy with username/password authentication")


def version_callback(value: bool) -> None:
    """Show version information."""
    if value:
        console.print(f"[cyan]socks5-relay v{__version__}[/cyan]")
        raise typer.Exit()


def nameservers_callback(values: list[str] | None) -> list[str]:
    """Accept comma or space separated nameservers; each must be an IP address."""
    nameservers = [item for value in values or [] for item in value.replace(",", " ").split()]
    for nameserver in nameservers:
        if not dns.inet.is_address(nameserver):
            raise typer.BadParameter(f"{nameserver!r} is not an IP address")
    return nameservers


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """SOCKS5 proxy command line."""


@app.command(name="serve")
def serve(
    host: str = typer.Option(DEFAULT_HOST, "--host", envvar="HOST", help="Address to listen on"),
    port: int = typer.Option(DEFAULT_PORT, "--port", envvar="PORT", help="Port to listen on"),
    user: str = typer.Option(DEFAULT_USERNAME, "--user", envvar="AUTH_USER", help="Accepted username"),
    password: str = typer.Option(
        DEFAULT_PASSWORD, "--password", envvar="AUTH_PASS", help="Accepted password"
    ),
    log_level: LogLevel = typer.Option(
        LogLevel.INFO, "--log-level", envvar="LOG_LEVEL", case_sensitive=False, help="Log verbosity"
    ),
    log_format: LogFormat = typer.Option(
        LogFormat.PLAIN, "--log-format", envvar="LOG_FORMAT", case_sensitive=False, help="Log line format"
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", envvar="LOG_FILE", help="Also write logs to this rotated file"
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT,
        "--timeout",
        envvar="IDLE_TIMEOUT",
        min=0.1,
        help="Client idle and upstream connect timeout in seconds",
    ),
    nameservers: list[str] | None = typer.Option(
        None,
        "--nameserver",
        envvar="DNS_SERVERS",
        callback=nameservers_callback,
        help="DNS server IP for domain lookups (repeatable, or comma separated; default: system resolver)",
    ),
) -> None:
    """Start the SOCKS5 proxy server."""
    config = ProxyConfig(
        host=host,
        port=port,
        username=user,
        password=password,
        log_level=log_level,
        log_format=log_format,
        log_file=log_file,
        idle_timeout=timeout,
        connect_timeout=timeout,
        nameservers=tuple(nameservers or ()),
    )
    configure_logging(config.log_level, config.log_format, config.log_file)

    try:
        server = create_proxy_server(config)
    except ServerBindError as e:
        console.print(f"[red]Error: {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[bold green]SOCKS5 proxy listening on {config.host}:{server.port}")
    run_server(server)
    logger.info("Shutting down proxy server")


if __name__ == "__main__":
    app()
