"""Exception hierarchy for the shell framework."""

from __future__ import annotations


class ShellError(Exception):
    """Base class for shell framework failures."""


class RegistryError(ShellError):
    """Raised when the command registry cannot be built (duplicate names)."""


class CommandNotFound(ShellError):
    """Raised when a command name is not present in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No such command: {name}")
        self.name = name


class CommandError(ShellError):
    """Raised by command handlers for invalid arguments or usage."""


class AccessListError(ShellError):
    """Raised when an access list file is unreadable or malformed."""

    def __init__(self, message: str, source: str = "", line: int | None = None) -> None:
        if line is not None:
            message = f"{source}:{line}: {message}"
        elif source:
            message = f"{source}: {message}"
        super().__init__(message)
        self.source = source
        self.line = line


class ListenError(ShellError):
    """Raised when the remote shell listener cannot be bound."""


class TransportError(ShellError):
    """Raised on I/O failure of a session transport."""


class TransportClosed(TransportError):
    """Raised when reading from or writing to a closed transport."""
