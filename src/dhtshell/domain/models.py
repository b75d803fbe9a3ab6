"""Core domain models for dhtshell.

Commands are immutable descriptors registered once at startup; command
results tell the session loop what to write and whether to keep going.
"""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TransportKind(str, enum.Enum):
    """Where a session's input comes from."""

    CONSOLE = "console"
    REMOTE = "remote"


class SessionState(str, enum.Enum):
    """Lifecycle state of a session."""

    ACTIVE = "active"
    CLOSED = "closed"


class SessionAction(str, enum.Enum):
    """What the session loop does after a command completes."""

    CONTINUE = "continue"
    QUIT = "quit"  # Close this session only
    HALT = "halt"  # Halt the whole server


# ---------------------------------------------------------------------------
# Command models
# ---------------------------------------------------------------------------


class CommandResult(BaseModel):
    """Outcome of a single command invocation."""

    model_config = ConfigDict(frozen=True)

    output: str = Field(default="", description="Text written back to the client")
    error: bool = Field(default=False, description="Whether the command failed")
    action: SessionAction = Field(default=SessionAction.CONTINUE)

    @classmethod
    def ok(cls, output: str = "") -> CommandResult:
        return cls(output=output)

    @classmethod
    def fail(cls, message: str) -> CommandResult:
        return cls(output=message, error=True)

    @classmethod
    def quit(cls, output: str = "") -> CommandResult:
        return cls(output=output, action=SessionAction.QUIT)

    @classmethod
    def halt(cls, output: str = "") -> CommandResult:
        return cls(output=output, action=SessionAction.HALT)


CommandHandler = Callable[[Any, list[str]], Awaitable[CommandResult]]


class Command(BaseModel):
    """A named operation invocable by one line of user input.

    The handler is called as ``await handler(session, args)`` and has
    access to the shared backend through ``session.backend``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(pattern=r"^\S+$", description="Unique, case-sensitive command name")
    handler: CommandHandler = Field(description="Coroutine function executing the command")
    aliases: tuple[str, ...] = Field(default=(), description="Alternative names")
    usage: str = Field(default="", description="Argument synopsis shown by help")
    description: str = Field(default="", description="One-line summary shown by help")
    min_args: int = Field(default=0, ge=0)
    max_args: int | None = Field(default=None, ge=0, description="None means unbounded")

    @model_validator(mode="after")
    def _check_arity(self) -> Command:
        if self.max_args is not None and self.max_args < self.min_args:
            raise ValueError(f"max_args < min_args for command {self.name!r}")
        for alias in self.aliases:
            if not alias or any(c.isspace() for c in alias):
                raise ValueError(f"invalid alias {alias!r} for command {self.name!r}")
        return self

    @property
    def names(self) -> tuple[str, ...]:
        """The command name followed by its aliases."""
        return (self.name, *self.aliases)

    @property
    def synopsis(self) -> str:
        return f"{self.name} {self.usage}".rstrip()

    def accepts(self, nargs: int) -> bool:
        """Whether ``nargs`` argument tokens satisfy the arity rule."""
        if nargs < self.min_args:
            return False
        return self.max_args is None or nargs <= self.max_args


class SessionInfo(BaseModel):
    """Read-only snapshot of a session, used for status reporting."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    kind: TransportKind
    peer: str
    interactive: bool
    state: SessionState
