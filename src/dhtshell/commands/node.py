"""Commands operating on the key-value node."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dhtshell.domain.models import Command, CommandResult
from dhtshell.shell.errors import CommandError

if TYPE_CHECKING:
    from dhtshell.shell.session import Session


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


async def status(session: Session, args: list[str]) -> CommandResult:
    info = await session.backend.execute("status")
    server = session.server
    lines = [
        f"node id: {info['node_id']}",
        f"contacts: {', '.join(info['contacts']) or '(none)'}",
        f"keys: {info['keys']}",
        f"values: {info['values']}",
        f"suspended: {_yes_no(info['suspended'])}",
        f"upnp: {'enabled' if info['upnp'] else 'disabled'}",
        f"sessions: {len(server.sessions)}",
        f"remote port: {server.port if server.port is not None else 'disabled'}",
        f"accepting: {_yes_no(server.is_accepting)}",
    ]
    return CommandResult.ok("\n".join(lines))


async def init(session: Session, args: list[str]) -> CommandResult:
    address = await session.backend.execute("join", args[0])
    return CommandResult.ok(f"joined via {address}")


async def get(session: Session, args: list[str]) -> CommandResult:
    lines = []
    for key in args:
        values = await session.backend.execute("get", key)
        lines.append(f"{key}: {', '.join(values) if values else '(not found)'}")
    return CommandResult.ok("\n".join(lines))


async def put(session: Session, args: list[str]) -> CommandResult:
    key, values = args[0], args[1:]
    await session.backend.execute("put", key, values, session.ttl, session.secret)
    ttl = session.ttl if session.ttl is not None else getattr(session.backend, "default_ttl", None)
    suffix = f" (ttl {ttl}s)" if ttl is not None else ""
    return CommandResult.ok(f"put {key}: {', '.join(values)}{suffix}")


async def remove(session: Session, args: list[str]) -> CommandResult:
    if session.secret is None:
        raise CommandError("no secret set, use setsecret first")
    key, values = args[0], args[1:]
    removed = await session.backend.execute("remove", key, values or None, session.secret)
    if not removed:
        return CommandResult.ok(f"{key}: nothing removed")
    return CommandResult.ok(f"removed {key}: {', '.join(removed)}")


async def setttl(session: Session, args: list[str]) -> CommandResult:
    try:
        ttl = int(args[0])
    except ValueError:
        ttl = 0
    if ttl <= 0:
        raise CommandError(f"ttl must be a positive integer: {args[0]}")
    session.ttl = ttl
    return CommandResult.ok(f"ttl set to {ttl} seconds")


async def setsecret(session: Session, args: list[str]) -> CommandResult:
    session.secret = args[0]
    return CommandResult.ok("secret set")


async def localdata(session: Session, args: list[str]) -> CommandResult:
    data = await session.backend.execute("localdata")
    if not data:
        return CommandResult.ok("(no local data)")
    lines = []
    for key, entries in data.items():
        for value, remaining in entries:
            lines.append(f"{key}: {value} (ttl {remaining}s)")
    return CommandResult.ok("\n".join(lines))


async def clear(session: Session, args: list[str]) -> CommandResult:
    count = await session.backend.execute("clear")
    return CommandResult.ok(f"routing table cleared ({count} contacts)")


NODE_COMMANDS = (
    Command(name="status", handler=status, max_args=0,
            description="Show node and shell server status"),
    Command(name="init", handler=init, usage="<host>[:<port>]", min_args=1, max_args=1,
            description="Join the overlay through a contact node"),
    Command(name="get", handler=get, usage="<key> [<key> ...]", min_args=1,
            description="Look up the values stored under one or more keys"),
    Command(name="put", handler=put, usage="<key> <value> [<value> ...]", min_args=2,
            description="Store values under a key with the session ttl and secret"),
    Command(name="remove", handler=remove, usage="<key> [<value> ...]", min_args=1,
            description="Remove values stored with the session secret"),
    Command(name="setttl", handler=setttl, usage="<seconds>", min_args=1, max_args=1,
            description="Set the time-to-live used by put"),
    Command(name="setsecret", handler=setsecret, usage="<secret>", min_args=1, max_args=1,
            description="Set the secret used by put and remove"),
    Command(name="localdata", handler=localdata, max_args=0,
            description="List the key-value pairs stored on this node"),
)

ROUTING_COMMANDS = (
    Command(name="clear", handler=clear, max_args=0,
            description="Clear the routing table"),
)
