"""Propagation of operator interrupts to blocked sessions.

The coordinator keeps a set of interruptible objects (in practice the
console transport) and wakes all of them when the operator signal
arrives or the server halts. It never preempts a backend operation that
is already running.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Interruptible(Protocol):
    def interrupt(self) -> None: ...


class InterruptCoordinator:
    """Fans one interruption request out to every registered object."""

    def __init__(self) -> None:
        self._targets: list[Interruptible] = []
        self._fired = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._signals: list[int] = []

    @property
    def interrupted(self) -> bool:
        return self._fired.is_set()

    def add(self, target: Interruptible) -> None:
        if target not in self._targets:
            self._targets.append(target)

    def remove(self, target: Interruptible) -> None:
        if target in self._targets:
            self._targets.remove(target)

    def interrupt(self) -> None:
        """Wake every registered object. Idempotent."""
        self._fired.set()
        for target in list(self._targets):
            try:
                target.interrupt()
            except Exception:
                logger.exception("Interrupting %r failed", target)

    async def wait(self) -> None:
        """Block until ``interrupt()`` has been called."""
        await self._fired.wait()

    def install(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: Iterable[int] = (signal.SIGINT,),
    ) -> None:
        """Route the operator signal(s) to ``interrupt()``."""
        self._loop = loop or asyncio.get_running_loop()
        for sig in signals:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug("Cannot install handler for signal %s: %s", sig, e)
                continue
            self._signals.append(sig)

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._signals.clear()
        self._loop = None

    def _on_signal(self, sig: int) -> None:
        logger.info("Received %s, interrupting blocked sessions", signal.Signals(sig).name)
        self.interrupt()
