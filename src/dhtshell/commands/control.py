"""Session and server control commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dhtshell.domain.models import Command, CommandResult
from dhtshell.shell.errors import CommandError

if TYPE_CHECKING:
    from dhtshell.shell.session import Session


async def help_(session: Session, args: list[str]) -> CommandResult:
    registry = session.registry
    if args:
        command = registry.get(args[0])
        if command is None:
            raise CommandError(f"unknown command {args[0]!r}")
        lines = [f"usage: {command.synopsis}"]
        if command.aliases:
            lines.append(f"aliases: {', '.join(command.aliases)}")
        if command.description:
            lines.append(command.description)
        return CommandResult.ok("\n".join(lines))

    width = max(len(c.synopsis) for c in registry.list())
    lines = [f"{c.synopsis:<{width}}  {c.description}".rstrip() for c in registry.list()]
    return CommandResult.ok("\n".join(lines))


async def quit_(session: Session, args: list[str]) -> CommandResult:
    return CommandResult.quit()


async def halt(session: Session, args: list[str]) -> CommandResult:
    return CommandResult.halt("halting")


async def suspend(session: Session, args: list[str]) -> CommandResult:
    changed = await session.server.suspend()
    return CommandResult.ok("suspended" if changed else "already suspended")


async def resume(session: Session, args: list[str]) -> CommandResult:
    changed = await session.server.resume()
    return CommandResult.ok("resumed" if changed else "not suspended")


CONTROL_COMMANDS = (
    Command(name="help", handler=help_, aliases=("?",), usage="[<command>]", max_args=1,
            description="List commands or describe one"),
    Command(name="quit", handler=quit_, aliases=("exit",), max_args=0,
            description="Close this session"),
    Command(name="halt", handler=halt, aliases=("stop",), max_args=0,
            description="Close every session and shut the node down"),
)

SERVER_COMMANDS = (
    Command(name="suspend", handler=suspend, max_args=0,
            description="Stop accepting remote sessions and suspend the node"),
    Command(name="resume", handler=resume, max_args=0,
            description="Accept remote sessions again and resume the node"),
)
