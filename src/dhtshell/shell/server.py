"""Shell server: accepts transports and owns the session table.

The session table, the suspended/halted flags and the listening socket
are the only state shared between the acceptor and the session tasks.
Every change to them happens under a single ``asyncio.Lock``, so an
accept racing a suspend or halt either completes before the flag flips
or is refused.
"""

from __future__ import annotations

import asyncio
import itertools
import logging

from dhtshell.backend.base import Backend, BackendError
from dhtshell.domain.models import TransportKind
from dhtshell.shell.access import AccessController
from dhtshell.shell.errors import ListenError
from dhtshell.shell.interrupt import InterruptCoordinator, Interruptible
from dhtshell.shell.printers import MessagePrinter, no_command_printer, ready_printer
from dhtshell.shell.registry import CommandRegistry
from dhtshell.shell.session import Session
from dhtshell.shell.transport import StreamTransport, Transport

logger = logging.getLogger(__name__)


class ShellServer:
    """Multiplexes one backend across a console and remote sessions.

    Example usage::

        server = ShellServer(backend, registry, port=4000)
        await server.start(console=ConsoleTransport())
        await server.wait_halted()
    """

    def __init__(
        self,
        backend: Backend,
        registry: CommandRegistry,
        access: AccessController | None = None,
        *,
        ready_printer: MessagePrinter = ready_printer,
        no_command_printer: MessagePrinter = no_command_printer,
        host: str = "0.0.0.0",
        port: int = -1,
        remote_interactive: bool = True,
        encoding: str = "utf-8",
        drain_timeout: float = 5.0,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._access = access if access is not None else AccessController()
        self._ready_printer = ready_printer
        self._no_command_printer = no_command_printer
        self._host = host
        self._port = port
        self._remote_interactive = remote_interactive
        self._encoding = encoding
        self._drain_timeout = drain_timeout

        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._listener: asyncio.AbstractServer | None = None
        self._bound_port: int | None = None
        self._suspended = False
        self._halted = False
        self._halted_event = asyncio.Event()
        self._ids = itertools.count(1)
        self._interrupts = InterruptCoordinator()

    # -------------------------------------------------------------------
    # Shared collaborators
    # -------------------------------------------------------------------

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def access(self) -> AccessController:
        return self._access

    @property
    def ready_printer(self) -> MessagePrinter:
        return self._ready_printer

    @property
    def no_command_printer(self) -> MessagePrinter:
        return self._no_command_printer

    @property
    def interrupts(self) -> InterruptCoordinator:
        return self._interrupts

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------

    @property
    def port(self) -> int | None:
        """The bound remote shell port, or None when remote access is disabled."""
        return self._bound_port

    @property
    def is_accepting(self) -> bool:
        return self._listener is not None and not self._suspended and not self._halted

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    @property
    def is_halted(self) -> bool:
        return self._halted

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    async def start(self, console: Transport | None = None) -> Session | None:
        """Open the remote listener (if a port is set) and the console session.

        Returns:
            The console session, if a console transport was given.

        Raises:
            ListenError: If the remote shell port cannot be bound.
        """
        if self._port >= 0:
            async with self._lock:
                await self._listen(self._port)
        if console is None:
            return None
        if isinstance(console, Interruptible):
            self._interrupts.add(console)
        return await self.open_session(console)

    async def open_session(self, transport: Transport) -> Session | None:
        """Register a session for an already-open transport and start it.

        Returns None (and closes the transport) once the server has halted.
        """
        async with self._lock:
            session = None if self._halted else self._register(transport)
        if session is None:
            logger.info("Refusing %s session from %s: server halted", transport.kind.value, transport.peer)
            await transport.close()
        return session

    async def suspend(self) -> bool:
        """Stop admitting remote connections and suspend the backend.

        Existing sessions keep running. Returns False if already suspended.
        """
        async with self._lock:
            if self._halted or self._suspended:
                return False
            self._suspended = True
            self._close_listener()
            await self._backend.suspend()
        logger.info("Shell server suspended")
        return True

    async def resume(self) -> bool:
        """Re-admit remote connections and resume the backend.

        Returns False if not suspended.

        Raises:
            ListenError: If the remote shell port cannot be bound again.
        """
        async with self._lock:
            if self._halted or not self._suspended:
                return False
            if self._port >= 0:
                await self._listen(self._bound_port if self._bound_port is not None else self._port)
            self._suspended = False
            await self._backend.resume()
        logger.info("Shell server resumed")
        return True

    async def halt(self) -> bool:
        """Close every session and stop the backend. Irreversible.

        Remote sessions are closed before the console session. Handlers
        already running inside the backend are not preempted; they get up
        to ``drain_timeout`` seconds to finish before their tasks are
        cancelled. Returns False if the server was already halted.
        """
        async with self._lock:
            if self._halted:
                return False
            self._halted = True
            self._close_listener()
            sessions = list(self._sessions.values())
            tasks = list(self._tasks.values())

        logger.info("Halting shell server (%d sessions)", len(sessions))
        ordered = [s for s in sessions if s.kind is TransportKind.REMOTE]
        ordered += [s for s in sessions if s.kind is not TransportKind.REMOTE]
        for session in ordered:
            await session.close()

        current = asyncio.current_task()
        pending = [t for t in tasks if t is not current and not t.done()]
        if pending:
            _, stragglers = await asyncio.wait(pending, timeout=self._drain_timeout)
            for task in stragglers:
                logger.warning("Cancelling session task %s still running after halt", task.get_name())
                task.cancel()

        try:
            await self._backend.stop()
        except BackendError as e:
            logger.warning("Backend failed to stop cleanly: %s", e)

        self._interrupts.interrupt()
        self._halted_event.set()
        logger.info("Shell server halted")
        return True

    async def wait_halted(self) -> None:
        await self._halted_event.wait()

    def add_interruptible(self, target: Interruptible) -> None:
        self._interrupts.add(target)

    # -------------------------------------------------------------------
    # Internals (lock held where noted)
    # -------------------------------------------------------------------

    async def _listen(self, port: int) -> None:
        # lock held
        try:
            self._listener = await asyncio.start_server(self._on_connect, self._host, port)
        except OSError as e:
            raise ListenError(f"cannot listen on {self._host}:{port}: {e}") from e
        self._bound_port = self._listener.sockets[0].getsockname()[1]
        logger.info("Remote shell listening on %s:%d", self._host, self._bound_port)

    def _close_listener(self) -> None:
        # lock held
        if self._listener is not None:
            self._listener.close()
            self._listener = None
            logger.info("Remote shell listener closed")

    def _register(self, transport: Transport) -> Session:
        # lock held
        session_id = f"{transport.kind.value}-{next(self._ids)}"
        session = Session(session_id, transport, self)
        self._sessions[session_id] = session
        self._tasks[session_id] = asyncio.create_task(
            self._run_session(session), name=f"session-{session_id}"
        )
        return session

    async def _run_session(self, session: Session) -> None:
        try:
            await session.run()
        except Exception:
            logger.exception("Session %s terminated unexpectedly", session.id)
        finally:
            async with self._lock:
                self._sessions.pop(session.id, None)
                self._tasks.pop(session.id, None)

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        transport = StreamTransport(
            reader, writer, interactive=self._remote_interactive, encoding=self._encoding
        )
        async with self._lock:
            if self._halted or self._suspended:
                logger.info("Refusing connection from %s: server not accepting", transport.peer)
                session = None
            elif not self._access.permit(transport.peer):
                logger.info("Rejected connection from %s by access list", transport.peer)
                session = None
            else:
                session = self._register(transport)
        if session is None:
            await transport.close()
