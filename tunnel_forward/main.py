"""
Main entry point for the tunnel forwarder.

This module provides the command-line interface: it builds a tunnel
configuration, starts the tunnel and keeps it running until the process
receives SIGINT or SIGTERM.
"""

import asyncio
import contextlib
import signal
import sys
from typing import Optional

import typer
from loguru import logger

from .application.fast_start import fast_start_tunnel
from .application.registry import TunnelFactoryRegistry, get_default_registry
from .core.domain.config import TunnelConfig
from .core.exceptions import ConfigurationError, TunnelError
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging

cli = typer.Typer(
    name="tunnel-forward",
    help="Forward local TCP connections through an authenticated SSH intermediary"
)


@cli.command()
def start(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    protocol: Optional[str] = typer.Option(
        None, "--protocol", help="Tunnel protocol (e.g. SSH)"
    ),
    tunnel_endpoint: Optional[str] = typer.Option(
        None, "--tunnel-endpoint", "-t", help="Intermediary endpoint, host[:port]"
    ),
    destination: Optional[str] = typer.Option(
        None, "--destination", "-d", help="Final destination, [protocol://]host[:port]"
    ),
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Tunnel username"
    ),
    password: Optional[str] = typer.Option(
        None, "--password", "-p", help="Tunnel password"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug logging"
    )
) -> None:
    """Start a tunnel and keep it open until interrupted."""

    config_loader = ConfigLoader()
    try:
        config = config_loader.load_config(config_file)
    except (FileNotFoundError, ConfigurationError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    # Override with command line arguments
    if protocol:
        config.tunnel.protocol = protocol
    if tunnel_endpoint:
        config.tunnel.endpoint = tunnel_endpoint
    if destination:
        config.tunnel.destination = destination
    if username:
        config.tunnel.username = username
    if password:
        config.tunnel.password = password
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)

    try:
        tunnel_config = config.to_tunnel_config()
    except ConfigurationError as e:
        logger.error(f"Invalid tunnel configuration: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_tunnel(tunnel_config))
    except KeyboardInterrupt:
        logger.info("Tunnel interrupted by user")
    except TunnelError as e:
        logger.error(f"Tunnel failed: {e}")
        sys.exit(1)


@cli.command()
def protocols() -> None:
    """List the registered tunnel protocols."""
    for name in sorted(get_default_registry().list_registered_protocols()):
        typer.echo(name)


@cli.command()
def init_config(
    output: str = typer.Option(
        "tunnel.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""

    config = ApplicationConfig()
    config_loader = ConfigLoader()

    try:
        config_loader.save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except ConfigurationError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(...,
                                      help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""

    config_loader = ConfigLoader()

    try:
        config = config_loader.load_config(config_file)
        tunnel_config = config.to_tunnel_config()
        get_default_registry().lookup(tunnel_config.protocol)
    except (FileNotFoundError, TunnelError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Tunnel: {tunnel_config.protocol} via {tunnel_config.tunnel_endpoint}")
    typer.echo(f"Destination: {tunnel_config.tunneled_protocol}://"
               f"{tunnel_config.remote_addr}:{tunnel_config.remote_port}")


async def run_tunnel(
    tunnel_config: TunnelConfig,
    registry: Optional[TunnelFactoryRegistry] = None,
    shutdown: Optional[asyncio.Event] = None
) -> None:
    """
    Run a tunnel until ``shutdown`` is set or a termination signal arrives.

    Args:
        tunnel_config: Tunnel configuration
        registry: Factory registry, the process-wide one by default
        shutdown: Event ending the run, created here if omitted
    """
    tunnel = await fast_start_tunnel(tunnel_config, registry)
    typer.echo(f"local tunnel endpoint: {tunnel.get_local_endpoint()}")

    shutdown = shutdown or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows, where Ctrl+C raises KeyboardInterrupt
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown.set)

    try:
        await shutdown.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
        tunnel.stop()
        await tunnel.wait_stopped()
        logger.info("Tunnel stopped")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
