"""Single-process key-value node.

Stands in for a DHT node: values are stored locally with a time-to-live
and an optional secret required to remove them, and ``init`` records
the routing contacts the node was told to join through. Routing and
replication are out of scope.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from dhtshell.backend.base import Backend, BackendError

logger = logging.getLogger(__name__)

DEFAULT_TTL = 10800  # seconds
DEFAULT_PORT = 3997

# Operations still served while the node is suspended
_READ_ONLY_WHILE_SUSPENDED = frozenset({"status", "localdata"})


class _Entry:
    __slots__ = ("value", "expires_at", "secret_hash")

    def __init__(self, value: str, expires_at: float, secret_hash: str | None) -> None:
        self.value = value
        self.expires_at = expires_at
        self.secret_hash = secret_hash


def _hash_secret(secret: str) -> str:
    return hashlib.sha1(secret.encode("utf-8")).hexdigest()


def parse_contact(contact: str) -> tuple[str, int]:
    """Split ``host[:port]`` (IPv6 hosts in brackets) into host and port."""
    contact = contact.strip()
    if contact.startswith("["):
        host, sep, rest = contact[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ValueError(f"invalid contact {contact!r}")
        port_text = rest[1:]
    elif contact.count(":") == 1:
        host, port_text = contact.split(":")
    else:
        host, port_text = contact, ""
    if not host:
        raise ValueError(f"invalid contact {contact!r}")
    if not port_text:
        return host, DEFAULT_PORT
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in contact {contact!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in contact {contact!r}")
    return host, port


class InMemoryBackend(Backend):
    """Key-value node keeping all data in this process."""

    def __init__(
        self,
        node_id: str | None = None,
        upnp: bool = False,
        default_ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._node_id = node_id or uuid.uuid4().hex
        self._upnp = upnp
        self._default_ttl = default_ttl
        self._clock = clock
        self._data: dict[str, dict[str, _Entry]] = {}
        self._contacts: list[str] = []
        self._lock = asyncio.Lock()
        self._started = False
        self._suspended = False
        self._stopped = False
        self._operations: dict[str, Callable[..., Any]] = {
            "status": self._status,
            "join": self._join,
            "get": self._get,
            "put": self._put,
            "remove": self._remove,
            "localdata": self._localdata,
            "clear": self._clear,
        }

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    async def start(self, contact: str | None = None) -> None:
        if self._stopped:
            raise BackendError("node has been stopped", operation="start")
        self._started = True
        logger.info("Node %s started (upnp=%s)", self._node_id, self._upnp)
        if contact:
            await self.execute("join", contact)

    async def execute(self, operation: str, *args: Any) -> Any:
        handler = self._operations.get(operation)
        if handler is None:
            raise BackendError(f"unknown operation {operation!r}", operation=operation)
        if self._stopped:
            raise BackendError("node is stopped", operation=operation)
        if not self._started:
            raise BackendError("node is not started", operation=operation)
        if self._suspended and operation not in _READ_ONLY_WHILE_SUSPENDED:
            raise BackendError("node is suspended", operation=operation)
        async with self._lock:
            try:
                return handler(*args)
            except TypeError as e:
                raise BackendError(f"bad arguments for {operation}: {e}", operation=operation) from e

    async def suspend(self) -> None:
        if not self._suspended:
            self._suspended = True
            logger.info("Node %s suspended", self._node_id)

    async def resume(self) -> None:
        if self._suspended:
            self._suspended = False
            logger.info("Node %s resumed", self._node_id)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        async with self._lock:
            self._data.clear()
            self._contacts.clear()
        logger.info("Node %s stopped", self._node_id)

    # -------------------------------------------------------------------
    # Operations (called with the lock held)
    # -------------------------------------------------------------------

    def _status(self) -> dict[str, Any]:
        self._purge_all()
        return {
            "node_id": self._node_id,
            "contacts": list(self._contacts),
            "keys": len(self._data),
            "values": sum(len(entries) for entries in self._data.values()),
            "suspended": self._suspended,
            "upnp": self._upnp,
        }

    def _join(self, contact: str) -> str:
        try:
            host, port = parse_contact(contact)
        except ValueError as e:
            raise BackendError(str(e), operation="join") from e
        address = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
        if address not in self._contacts:
            self._contacts.append(address)
        logger.info("Node %s joined via %s", self._node_id, address)
        return address

    def _get(self, key: str) -> list[str]:
        self._purge(key)
        return list(self._data.get(key, {}))

    def _put(
        self, key: str, values: list[str], ttl: int | None = None, secret: str | None = None
    ) -> list[str]:
        if not values:
            raise BackendError("put requires at least one value", operation="put")
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise BackendError(f"invalid ttl {ttl}", operation="put")
        self._purge(key)
        entries = self._data.setdefault(key, {})
        previous = list(entries)
        expires_at = self._clock() + ttl
        secret_hash = _hash_secret(secret) if secret is not None else None
        for value in values:
            entries.pop(value, None)
            entries[value] = _Entry(value, expires_at, secret_hash)
        return previous

    def _remove(
        self, key: str, values: list[str] | None = None, secret: str | None = None
    ) -> list[str]:
        if secret is None:
            raise BackendError("a secret is required to remove values", operation="remove")
        self._purge(key)
        entries = self._data.get(key)
        if not entries:
            return []
        secret_hash = _hash_secret(secret)
        targets = values if values else list(entries)
        removed = []
        for value in targets:
            entry = entries.get(value)
            if entry is not None and entry.secret_hash == secret_hash:
                del entries[value]
                removed.append(value)
        if not entries:
            del self._data[key]
        return removed

    def _localdata(self) -> dict[str, list[tuple[str, int]]]:
        self._purge_all()
        now = self._clock()
        return {
            key: [(entry.value, max(0, int(entry.expires_at - now))) for entry in entries.values()]
            for key, entries in self._data.items()
        }

    def _clear(self) -> int:
        count = len(self._contacts)
        self._contacts.clear()
        logger.info("Node %s routing table cleared (%d contacts)", self._node_id, count)
        return count

    def _purge(self, key: str) -> None:
        entries = self._data.get(key)
        if not entries:
            return
        now = self._clock()
        for value in [v for v, e in entries.items() if e.expires_at <= now]:
            del entries[value]
        if not entries:
            del self._data[key]

    def _purge_all(self) -> None:
        for key in list(self._data):
            self._purge(key)
