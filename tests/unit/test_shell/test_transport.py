"""Tests for the console and stream transports."""

from __future__ import annotations

import asyncio
import io
import os
import socket

import pytest

from dhtshell.domain.models import TransportKind
from dhtshell.shell.errors import TransportClosed, TransportError
from dhtshell.shell.transport import ConsoleTransport, StreamTransport


class TestConsoleTransport:
    @pytest.mark.asyncio
    async def test_reads_lines_until_eof(self) -> None:
        console = ConsoleTransport(io.StringIO("status\r\nget k\n"), io.StringIO())
        assert console.kind is TransportKind.CONSOLE
        assert await console.readline() == "status"
        assert await console.readline() == "get k"
        assert await console.readline() is None

    @pytest.mark.asyncio
    async def test_writes_to_stdout(self) -> None:
        out = io.StringIO()
        console = ConsoleTransport(io.StringIO(), out)
        await console.write("Ready.\r\n")
        assert out.getvalue() == "Ready.\r\n"

    @pytest.mark.asyncio
    async def test_interrupt_wakes_blocked_read(self) -> None:
        read_fd, write_fd = os.pipe()
        stdin = os.fdopen(read_fd, "r")
        console = ConsoleTransport(stdin, io.StringIO())
        try:
            pending = asyncio.create_task(console.readline())
            await asyncio.sleep(0.05)
            assert not pending.done()
            console.interrupt()
            with pytest.raises(TransportClosed):
                await asyncio.wait_for(pending, 1.0)
            with pytest.raises(TransportClosed):
                await console.readline()
        finally:
            os.close(write_fd)
            if console._reader_thread is not None:
                console._reader_thread.join(1.0)
            stdin.close()

    @pytest.mark.asyncio
    async def test_closed_console_rejects_io(self) -> None:
        console = ConsoleTransport(io.StringIO("x\n"), io.StringIO())
        await console.close()
        await console.close()
        assert console.is_closed
        with pytest.raises(TransportClosed):
            await console.readline()
        with pytest.raises(TransportClosed):
            await console.write("x")

    def test_console_is_interruptible(self) -> None:
        from dhtshell.shell.interrupt import Interruptible

        assert isinstance(ConsoleTransport(io.StringIO(), io.StringIO()), Interruptible)


class TestStreamTransport:
    @pytest.mark.asyncio
    async def test_line_round_trip(self) -> None:
        ours, theirs = socket.socketpair()
        reader, writer = await asyncio.open_connection(sock=ours)
        transport = StreamTransport(reader, writer, interactive=False)
        try:
            assert transport.kind is TransportKind.REMOTE
            assert not transport.interactive
            theirs.sendall("get clé\r\n".encode())
            assert await transport.readline() == "get clé"

            await transport.write("clé: (not found)\r\n")
            assert theirs.recv(100) == "clé: (not found)\r\n".encode()

            theirs.shutdown(socket.SHUT_WR)
            assert await transport.readline() is None
        finally:
            await transport.close()
            await transport.close()
            theirs.close()

    @pytest.mark.asyncio
    async def test_closed_stream_rejects_io(self) -> None:
        ours, theirs = socket.socketpair()
        reader, writer = await asyncio.open_connection(sock=ours)
        transport = StreamTransport(reader, writer)
        try:
            await transport.close()
            with pytest.raises(TransportClosed):
                await transport.readline()
            with pytest.raises(TransportClosed):
                await transport.write("x")
        finally:
            theirs.close()

    @pytest.mark.asyncio
    async def test_overlong_line_is_a_transport_error(self) -> None:
        ours, theirs = socket.socketpair()
        theirs.setblocking(False)
        reader, writer = await asyncio.open_connection(sock=ours)
        transport = StreamTransport(reader, writer)
        loop = asyncio.get_running_loop()
        sending = asyncio.create_task(loop.sock_sendall(theirs, b"get " + b"x" * 70_000 + b"\r\n"))
        try:
            with pytest.raises(TransportError, match="too long"):
                await asyncio.wait_for(transport.readline(), 2.0)
        finally:
            sending.cancel()
            await transport.close()
            theirs.close()
