"""Shared test fixtures for the dhtshell test suite.

Provides in-memory transports standing in for the console and remote
sockets, a fresh key-value node, and the built-in command registry.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from dhtshell.backend import Backend, InMemoryBackend
from dhtshell.commands import build_registry
from dhtshell.domain.models import TransportKind
from dhtshell.shell.errors import TransportClosed
from dhtshell.shell.registry import CommandRegistry
from dhtshell.shell.transport import Transport

_CLOSED = object()


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


class ScriptedTransport(Transport):
    """Replays a fixed list of input lines, then reports end of input."""

    def __init__(
        self,
        lines: list[str] | tuple[str, ...] = (),
        kind: TransportKind = TransportKind.REMOTE,
        interactive: bool = False,
        peer: str = "127.0.0.1",
    ) -> None:
        super().__init__(interactive=interactive, peer=peer)
        self.kind = kind
        self._lines = list(lines)
        self.written: list[str] = []

    @property
    def output(self) -> str:
        return "".join(self.written)

    async def readline(self) -> str | None:
        if self._closed:
            raise TransportClosed("closed")
        if not self._lines:
            return None
        return self._lines.pop(0)

    async def write(self, text: str) -> None:
        if self._closed:
            raise TransportClosed("closed")
        self.written.append(text)

    async def close(self) -> None:
        self._closed = True


class QueueTransport(Transport):
    """A transport fed line by line from the test, like a live console."""

    def __init__(
        self,
        kind: TransportKind = TransportKind.CONSOLE,
        interactive: bool = True,
        peer: str = "console",
    ) -> None:
        super().__init__(interactive=interactive, peer=peer)
        self.kind = kind
        self._input: asyncio.Queue[object] = asyncio.Queue()
        self._output = ""
        self._pos = 0
        self._changed = asyncio.Event()

    @property
    def output(self) -> str:
        return self._output

    def feed(self, line: str) -> None:
        self._input.put_nowait(line)

    def feed_eof(self) -> None:
        self._input.put_nowait(None)

    async def readline(self) -> str | None:
        if self._closed:
            raise TransportClosed("closed")
        item = await self._input.get()
        if item is _CLOSED:
            raise TransportClosed("closed")
        return item  # type: ignore[return-value]

    async def write(self, text: str) -> None:
        if self._closed:
            raise TransportClosed("closed")
        self._output += text
        self._changed.set()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._input.put_nowait(_CLOSED)

    async def read_until(self, marker: str, timeout: float = 2.0) -> str:
        """Return everything written since the last call, up to ``marker``."""

        async def _wait() -> str:
            while marker not in self._output[self._pos:]:
                self._changed.clear()
                await self._changed.wait()
            end = self._output.index(marker, self._pos) + len(marker)
            chunk = self._output[self._pos:end]
            self._pos = end
            return chunk

        return await asyncio.wait_for(_wait(), timeout)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> InMemoryBackend:
    """A fresh, not yet started key-value node."""
    return InMemoryBackend(node_id="test-node", default_ttl=60)


@pytest.fixture
def mock_backend() -> AsyncMock:
    """A mock Backend with all async methods stubbed."""
    mock = AsyncMock(spec=Backend)
    mock.is_suspended = False
    mock.is_stopped = False
    return mock


@pytest.fixture
def registry() -> CommandRegistry:
    return build_registry()


@pytest.fixture
def scripted() -> type[ScriptedTransport]:
    """Factory for transports replaying a fixed script."""
    return ScriptedTransport


@pytest.fixture
def console() -> QueueTransport:
    """An interactive console transport driven by the test."""
    return QueueTransport()
