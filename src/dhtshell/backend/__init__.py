"""Backend handle for dhtshell.

Public API:
    Backend -- Abstract base class
    BackendError -- Raised by failing operations
    InMemoryBackend -- Single-process key-value node
"""

from dhtshell.backend.base import Backend, BackendError
from dhtshell.backend.memory import InMemoryBackend

__all__ = ["Backend", "BackendError", "InMemoryBackend"]
