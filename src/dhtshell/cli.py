"""Command-line interface for dhtshell.

Parses the shell flags, initializes the node and runs the shell server
until it is halted or the operator interrupts the process.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TextIO

import yaml

from dhtshell.backend import BackendError, InMemoryBackend
from dhtshell.commands import build_registry
from dhtshell.config.settings import Settings, load_settings
from dhtshell.shell import (
    AccessController,
    ConsoleTransport,
    Session,
    ShellError,
    ShellServer,
)
from dhtshell.utils.logging import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_PORT = 8080


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="dhtshell",
        description="Interactive shell server for a DHT node",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/dhtshell.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-p", "--port",
        type=int, default=None,
        help="Remote shell port (negative disables remote access)",
    )
    parser.add_argument(
        "-A", "--acl",
        type=Path, default=None,
        help="Access control list file for remote clients",
    )
    parser.add_argument(
        "-n", "--disablestdin",
        dest="disable_stdin", action="store_true",
        help="Disable the console session",
    )
    parser.add_argument(
        "-u", "--upnp",
        action="store_true",
        help="Enable UPnP NAT traversal",
    )
    parser.add_argument(
        "--http-port",
        type=int, default=None,
        help="Serve the HTTP gateway on this port",
    )
    parser.add_argument(
        "contact", nargs="?", default=None,
        help="Contact node to join through, as host[:port]",
    )
    return parser.parse_args(argv)


def apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply command-line flags on top of the loaded settings."""
    if args.port is not None:
        settings.shell.port = max(args.port, -1)
    if args.acl is not None:
        settings.shell.acl = args.acl
    if args.disable_stdin:
        settings.shell.disable_stdin = True
    if args.upnp:
        settings.backend.upnp = True
    if args.http_port is not None:
        settings.gateway.enabled = True
        settings.gateway.port = args.http_port
    if args.verbose:
        settings.logging.level = "DEBUG"
    return settings


async def serve(
    settings: Settings,
    contact: str | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Initialize the node and run the shell server until it halts.

    Raises:
        AccessListError: If the access list cannot be loaded.
        BackendError: If the node cannot be initialized.
        ListenError: If the remote shell port cannot be bound.
    """
    shell = settings.shell
    access = AccessController.load(shell.acl) if shell.acl else AccessController()

    backend = InMemoryBackend(
        node_id=settings.backend.node_id,
        upnp=settings.backend.upnp,
        default_ttl=settings.backend.default_ttl,
    )
    await backend.start(contact)

    server = ShellServer(
        backend,
        build_registry(),
        access,
        host=shell.host,
        port=shell.port,
        remote_interactive=shell.remote_interactive,
        encoding=shell.encoding,
        drain_timeout=shell.drain_timeout,
    )
    console = None
    if not shell.disable_stdin:
        console = ConsoleTransport(stdin, stdout, interactive=shell.interactive)
    try:
        console_session = await server.start(console=console)
    except ShellError:
        await backend.stop()
        raise

    server.interrupts.install()
    gateway = gateway_task = None
    if settings.gateway.enabled:
        from dhtshell.gateway.server import create_gateway

        port = settings.gateway.port
        if port is None:
            port = server.port + 1 if server.port is not None else DEFAULT_GATEWAY_PORT
        gateway = create_gateway(server, settings.gateway.host, port)
        gateway_task = asyncio.create_task(gateway.serve(), name="gateway")
        logger.info("HTTP gateway on %s:%d", settings.gateway.host, port)

    try:
        await _wait_for_shutdown(server, console_session)
    finally:
        server.interrupts.uninstall()
        await server.halt()
        if gateway is not None:
            gateway.should_exit = True
            await gateway_task


async def _wait_for_shutdown(server: ShellServer, console_session: Session | None) -> None:
    """Return on halt, on operator interrupt, or when the console ends
    and there is no remote listener left to serve."""
    waiters = {
        asyncio.create_task(server.wait_halted()),
        asyncio.create_task(server.interrupts.wait()),
    }
    if console_session is not None and server.port is None:
        waiters.add(asyncio.create_task(console_session.wait_closed()))
    _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the dhtshell CLI."""
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (ValueError, OSError, yaml.YAMLError) as e:
        print(f"dhtshell: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    apply_args(settings, args)
    setup_logging(settings.logging)

    try:
        asyncio.run(serve(settings, args.contact))
    except (ShellError, BackendError) as e:
        print(f"dhtshell: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
