"""Message printers invoked by a session around command dispatch.

A printer is a coroutine function taking the session transport and an
optional hint token. Two are used: one writes the readiness marker
before each prompt, the other reports an unknown command.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dhtshell.shell.transport import Transport

CRLF = "\r\n"
READY_MARKER = "Ready."
NO_COMMAND_TEXT = "No such command"

MessagePrinter = Callable[["Transport", "str | None"], Awaitable[None]]


def format_no_command(hint: str | None = None) -> str:
    if hint:
        return f"{NO_COMMAND_TEXT}: {hint}{CRLF}"
    return f"{NO_COMMAND_TEXT}.{CRLF}"


async def ready_printer(transport: Transport, hint: str | None = None) -> None:
    await transport.write(READY_MARKER + CRLF)


async def no_command_printer(transport: Transport, hint: str | None = None) -> None:
    await transport.write(format_no_command(hint))
