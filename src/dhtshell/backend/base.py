"""Abstract base class for the backend handle.

The shell treats the key-value node as an opaque service: it can execute
a named operation and be suspended, resumed or stopped. All concrete
nodes must conform to this interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Abstract interface to the long-lived service exposed by the shell.

    Implementations must be safe for concurrent calls from many sessions.

    Example usage::

        async with InMemoryBackend() as node:
            await node.execute("put", "key", ["value"])
            values = await node.execute("get", "key")
    """

    @abstractmethod
    async def start(self, contact: str | None = None) -> None:
        """Initialize the node, optionally joining through ``contact``.

        Raises:
            BackendError: If the node cannot be initialized.
        """
        ...

    @abstractmethod
    async def execute(self, operation: str, *args: Any) -> Any:
        """Execute a named operation and return its result.

        Raises:
            BackendError: If the operation is unknown or fails.
        """
        ...

    @abstractmethod
    async def suspend(self) -> None:
        """Stop serving requests until ``resume()``."""
        ...

    @abstractmethod
    async def resume(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Shut the node down. Should be safe to call multiple times."""
        ...

    @property
    @abstractmethod
    def is_suspended(self) -> bool: ...

    @property
    @abstractmethod
    def is_stopped(self) -> bool: ...

    async def __aenter__(self) -> Backend:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.stop()


class BackendError(Exception):
    """Raised when a backend operation fails."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation
