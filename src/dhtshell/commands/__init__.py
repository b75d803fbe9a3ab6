"""Built-in shell commands.

Public API:
    BUILTIN_COMMANDS -- Ordered command descriptors
    build_registry -- Registry of the built-in commands
"""

from __future__ import annotations

from collections.abc import Iterable

from dhtshell.commands.control import CONTROL_COMMANDS, SERVER_COMMANDS
from dhtshell.commands.node import NODE_COMMANDS, ROUTING_COMMANDS
from dhtshell.domain.models import Command
from dhtshell.shell.registry import CommandRegistry

BUILTIN_COMMANDS: tuple[Command, ...] = (
    *NODE_COMMANDS,
    *CONTROL_COMMANDS,
    *ROUTING_COMMANDS,
    *SERVER_COMMANDS,
)


def build_registry(extra: Iterable[Command] = ()) -> CommandRegistry:
    """Build the registry from the built-in commands plus ``extra``."""
    return CommandRegistry.register((*BUILTIN_COMMANDS, *extra))


__all__ = ["BUILTIN_COMMANDS", "build_registry"]
