"""Session transports: the local console and accepted TCP connections.

Both speak the same line protocol: one UTF-8 line per request, CRLF
terminated lines in response.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import TextIO

from dhtshell.domain.models import TransportKind
from dhtshell.shell.errors import TransportClosed, TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract line-oriented transport bound to one session."""

    kind: TransportKind = TransportKind.REMOTE

    def __init__(self, interactive: bool = True, peer: str = "unknown") -> None:
        self._interactive = interactive
        self._peer = peer
        self._closed = False

    @property
    def interactive(self) -> bool:
        """Whether a readiness marker is written before each prompt."""
        return self._interactive

    @property
    def peer(self) -> str:
        """Client identity (remote address, or ``console``)."""
        return self._peer

    @property
    def is_closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def readline(self) -> str | None:
        """Read one line without its terminator.

        Returns:
            The line, or None at end of input.

        Raises:
            TransportClosed: If the transport was closed or interrupted.
            TransportError: On an I/O failure.
        """
        ...

    @abstractmethod
    async def write(self, text: str) -> None:
        """Write text as-is.

        Raises:
            TransportClosed: If the transport was closed.
            TransportError: On an I/O failure.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        ...


class StreamTransport(Transport):
    """A remote client connected over an asyncio stream pair."""

    kind = TransportKind.REMOTE

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        interactive: bool = True,
        encoding: str = "utf-8",
    ) -> None:
        peername = writer.get_extra_info("peername")
        peer = str(peername[0]) if peername else "unknown"
        super().__init__(interactive=interactive, peer=peer)
        self._reader = reader
        self._writer = writer
        self._encoding = encoding

    async def readline(self) -> str | None:
        if self._closed:
            raise TransportClosed(f"connection from {self._peer} is closed")
        try:
            data = await self._reader.readline()
        except (ConnectionError, OSError, asyncio.IncompleteReadError) as e:
            raise TransportError(f"read from {self._peer} failed: {e}") from e
        except ValueError as e:
            # StreamReader reports a line over its limit as ValueError
            raise TransportError(f"line from {self._peer} too long: {e}") from e
        if not data:
            if self._closed:
                raise TransportClosed(f"connection from {self._peer} is closed")
            return None
        return data.decode(self._encoding, errors="replace").rstrip("\r\n")

    async def write(self, text: str) -> None:
        if self._closed or self._writer.is_closing():
            raise TransportClosed(f"connection from {self._peer} is closed")
        try:
            self._writer.write(text.encode(self._encoding))
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(f"write to {self._peer} failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("Error closing connection from %s: %s", self._peer, e)


class ConsoleTransport(Transport):
    """The local console, normally stdin/stdout.

    Lines are read on a daemon thread and handed to the event loop, so a
    blocked read never stalls other sessions or process exit. The read
    point also observes an interrupt event: ``interrupt()`` wakes a
    pending ``readline()``, which then raises ``TransportClosed``.
    """

    kind = TransportKind.CONSOLE

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        interactive: bool = True,
    ) -> None:
        super().__init__(interactive=interactive, peer="console")
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._lines: asyncio.Queue[str | BaseException | None] | None = None
        self._reader_thread: threading.Thread | None = None
        self._interrupted = asyncio.Event()

    def interrupt(self) -> None:
        """Wake a blocked ``readline()``; the console is closed afterwards."""
        logger.debug("Console read interrupted")
        self._interrupted.set()

    def _start_reader(self) -> asyncio.Queue[str | BaseException | None]:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str | BaseException | None] = asyncio.Queue()
        self._lines = lines

        def pump() -> None:
            item: BaseException | None = None
            try:
                for line in iter(self._stdin.readline, ""):
                    loop.call_soon_threadsafe(lines.put_nowait, line)
            except (OSError, ValueError) as e:
                item = e
            try:
                loop.call_soon_threadsafe(lines.put_nowait, item)
            except RuntimeError:
                pass  # event loop already closed

        self._reader_thread = threading.Thread(target=pump, name="console-reader", daemon=True)
        self._reader_thread.start()
        return lines

    async def readline(self) -> str | None:
        if self._closed or self._interrupted.is_set():
            raise TransportClosed("console is closed")
        lines = self._lines if self._lines is not None else self._start_reader()

        get = asyncio.ensure_future(lines.get())
        wake = asyncio.ensure_future(self._interrupted.wait())
        try:
            await asyncio.wait({get, wake}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (get, wake):
                if not fut.done():
                    fut.cancel()

        if not get.done() or get.cancelled():
            raise TransportClosed("console input interrupted")
        item = get.result()
        if isinstance(item, BaseException):
            raise TransportError(f"console read failed: {item}") from item
        if item is None:
            return None
        return item.rstrip("\r\n")

    async def write(self, text: str) -> None:
        if self._closed:
            raise TransportClosed("console is closed")
        try:
            self._stdout.write(text)
            self._stdout.flush()
        except (OSError, ValueError) as e:
            raise TransportError(f"console write failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._interrupted.set()
