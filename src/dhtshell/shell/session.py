"""Per-client read-dispatch-write loop."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from dhtshell.backend.base import Backend, BackendError
from dhtshell.domain.models import (
    CommandResult,
    SessionAction,
    SessionInfo,
    SessionState,
    TransportKind,
)
from dhtshell.shell.errors import ShellError, TransportError
from dhtshell.shell.printers import CRLF
from dhtshell.shell.registry import CommandRegistry
from dhtshell.shell.transport import Transport

if TYPE_CHECKING:
    from dhtshell.shell.server import ShellServer

logger = logging.getLogger(__name__)


def tokenize(line: str) -> list[str]:
    """Split a request line on whitespace. Tokens are kept verbatim."""
    return line.split()


class Session:
    """One client's command loop bound to one transport.

    Commands are processed strictly one at a time in the order they are
    read. Handler failures are reported to the client and the loop goes
    on; a transport failure ends this session only.

    Per-session command state (``ttl`` and ``secret``) is set by the
    ``setttl``/``setsecret`` commands and used by ``put``/``remove``.
    """

    def __init__(self, session_id: str, transport: Transport, server: ShellServer) -> None:
        self._id = session_id
        self._transport = transport
        self._server = server
        self._state = SessionState.ACTIVE
        self._closed = asyncio.Event()
        self.ttl: int | None = None
        self.secret: str | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def kind(self) -> TransportKind:
        return self._transport.kind

    @property
    def interactive(self) -> bool:
        return self._transport.interactive

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def server(self) -> ShellServer:
        return self._server

    @property
    def backend(self) -> Backend:
        return self._server.backend

    @property
    def registry(self) -> CommandRegistry:
        return self._server.registry

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self._id,
            kind=self.kind,
            peer=self._transport.peer,
            interactive=self.interactive,
            state=self._state,
        )

    async def run(self) -> None:
        """Serve commands until end of input, quit, halt or transport failure."""
        logger.info("Session %s opened (%s)", self._id, self._transport.peer)
        try:
            await self._prompt()
            while self._state is SessionState.ACTIVE:
                line = await self._transport.readline()
                if line is None:
                    logger.info("Session %s reached end of input", self._id)
                    break
                action = await self.execute(line)
                if action is SessionAction.QUIT:
                    break
                if action is SessionAction.HALT:
                    await self._server.halt()
                    break
                await self._prompt()
        except TransportError as e:
            if self._state is SessionState.ACTIVE:
                logger.info("Session %s transport failed: %s", self._id, e)
        finally:
            await self.close()

    async def execute(self, line: str) -> SessionAction:
        """Dispatch one request line and write its response."""
        tokens = tokenize(line)
        if not tokens:
            return SessionAction.CONTINUE
        name, args = tokens[0], tokens[1:]

        command = self.registry.get(name)
        if command is None:
            logger.debug("Session %s: unknown command %r", self._id, name)
            await self._server.no_command_printer(self._transport, name)
            return SessionAction.CONTINUE

        if not command.accepts(len(args)):
            result = CommandResult.fail(f"usage: {command.synopsis}")
        else:
            try:
                result = await command.handler(self, args)
            except TransportError:
                raise
            except (BackendError, ShellError) as e:
                result = CommandResult.fail(f"{name}: {e}")
            except Exception:
                logger.exception("Session %s: command %r failed", self._id, name)
                result = CommandResult.fail(f"{name}: internal error")

        if result.error:
            logger.debug("Session %s: %s -> %s", self._id, name, result.output)
        await self._write_result(result)
        return result.action

    async def close(self) -> None:
        """Release the transport. Never touches the backend."""
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        await self._transport.close()
        self._closed.set()
        logger.info("Session %s closed", self._id)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _prompt(self) -> None:
        if self._transport.interactive:
            await self._server.ready_printer(self._transport, None)

    async def _write_result(self, result: CommandResult) -> None:
        if not result.output:
            return
        text = CRLF.join(result.output.splitlines()) + CRLF
        await self._transport.write(text)
