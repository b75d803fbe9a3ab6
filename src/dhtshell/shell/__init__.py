"""Shell framework for dhtshell.

Sessions read one command per line, dispatch it through the command
registry and write the result back. The shell server owns the session
table, gates remote clients through the access controller and exposes
suspend, resume and halt.

Public API:
    CommandRegistry -- Static name/alias lookup
    AccessController -- Remote client allow/deny list
    Session -- Per-client command loop
    ShellServer -- Session manager
    InterruptCoordinator -- Operator interrupt fan-out
    ConsoleTransport, StreamTransport -- Session transports
"""

from dhtshell.shell.access import AccessController, AccessRule
from dhtshell.shell.errors import (
    AccessListError,
    CommandError,
    CommandNotFound,
    ListenError,
    RegistryError,
    ShellError,
    TransportClosed,
    TransportError,
)
from dhtshell.shell.interrupt import InterruptCoordinator, Interruptible
from dhtshell.shell.registry import CommandRegistry
from dhtshell.shell.server import ShellServer
from dhtshell.shell.session import Session
from dhtshell.shell.transport import ConsoleTransport, StreamTransport, Transport

__all__ = [
    "AccessController",
    "AccessListError",
    "AccessRule",
    "CommandError",
    "CommandNotFound",
    "CommandRegistry",
    "ConsoleTransport",
    "InterruptCoordinator",
    "Interruptible",
    "ListenError",
    "RegistryError",
    "Session",
    "ShellError",
    "ShellServer",
    "StreamTransport",
    "Transport",
    "TransportClosed",
    "TransportError",
]
