"""Static command registry.

Built once at process start from an ordered list of command descriptors
and shared read-only by every session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from dhtshell.domain.models import Command
from dhtshell.shell.errors import CommandNotFound, RegistryError

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Ordered command list plus a name/alias lookup table.

    Lookup is an exact, case-sensitive match on a command name or one of
    its aliases. There is no prefix or fuzzy matching.
    """

    def __init__(self, commands: Iterable[Command]) -> None:
        self._commands = tuple(commands)
        table: dict[str, Command] = {}
        for command in self._commands:
            for name in command.names:
                existing = table.get(name)
                if existing is not None:
                    raise RegistryError(
                        f"Duplicate command name {name!r} "
                        f"(registered by {existing.name!r} and {command.name!r})"
                    )
                table[name] = command
        self._table = table
        logger.debug("Registered %d commands (%d names)", len(self._commands), len(table))

    @classmethod
    def register(cls, commands: Iterable[Command]) -> CommandRegistry:
        """Build a registry, failing fast on duplicate names or aliases."""
        return cls(commands)

    def lookup(self, name: str) -> Command:
        """Return the command registered under ``name``.

        Raises:
            CommandNotFound: If no command or alias matches exactly.
        """
        try:
            return self._table[name]
        except KeyError:
            raise CommandNotFound(name) from None

    def get(self, name: str) -> Command | None:
        return self._table.get(name)

    def list(self) -> tuple[Command, ...]:
        """All commands in registration order."""
        return self._commands

    def __contains__(self, name: object) -> bool:
        return name in self._table

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)
