"""FastAPI HTTP gateway to the key-value node.

Exposes the same node the shell sessions use, for programs that prefer
HTTP to the line protocol. Normally served on the shell port + 1.

    GET    /health               -> {"status": "ok", ...}
    GET    /status               -> node status
    GET    /keys/{key}           -> {"key": ..., "values": [...]}
    PUT    /keys/{key}           <- {"values": [...], "ttl": 60, "secret": "s"}
    DELETE /keys/{key}?secret=s[&value=v ...]
    POST   /control/{suspend|resume|halt}
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from dhtshell.backend.base import BackendError
from dhtshell.shell.errors import ShellError
from dhtshell.shell.server import ShellServer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class PutRequest(BaseModel):
    values: list[str] = Field(min_length=1, description="Values to store under the key")
    ttl: int | None = Field(default=None, gt=0, description="Time-to-live in seconds")
    secret: str | None = Field(default=None, description="Secret required to remove the values")


class KeyValues(BaseModel):
    key: str
    values: list[str]


class HealthResponse(BaseModel):
    status: Literal["ok", "halted"] = "ok"
    accepting: bool = False
    suspended: bool = False
    sessions: int = 0


class ControlResponse(BaseModel):
    action: str
    changed: bool


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(server: ShellServer) -> FastAPI:
    """Create the gateway application for a running shell server."""

    app = FastAPI(
        title="dhtshell gateway",
        description="HTTP access to the dhtshell key-value node",
        version="0.1.0",
    )
    app.state.server = server

    async def _execute(operation: str, *args: Any) -> Any:
        s: ShellServer = app.state.server
        if s.is_halted:
            raise HTTPException(status_code=503, detail="server halted")
        try:
            return await s.backend.execute(operation, *args)
        except BackendError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.get("/health")
    async def health_check() -> HealthResponse:
        s: ShellServer = app.state.server
        return HealthResponse(
            status="halted" if s.is_halted else "ok",
            accepting=s.is_accepting,
            suspended=s.is_suspended,
            sessions=len(s.sessions),
        )

    @app.get("/status")
    async def node_status() -> dict[str, Any]:
        return await _execute("status")

    @app.get("/keys/{key}")
    async def get_key(key: str) -> KeyValues:
        return KeyValues(key=key, values=await _execute("get", key))

    @app.put("/keys/{key}")
    async def put_key(key: str, request: PutRequest) -> KeyValues:
        await _execute("put", key, request.values, request.ttl, request.secret)
        return KeyValues(key=key, values=await _execute("get", key))

    @app.delete("/keys/{key}")
    async def remove_key(
        key: str,
        secret: str = Query(description="Secret the values were stored with"),
        value: list[str] | None = Query(default=None, description="Values to remove, all if omitted"),
    ) -> KeyValues:
        removed = await _execute("remove", key, value or None, secret)
        return KeyValues(key=key, values=removed)

    @app.post("/control/{action}")
    async def control(action: Literal["suspend", "resume", "halt"]) -> ControlResponse:
        s: ShellServer = app.state.server
        if s.is_halted:
            raise HTTPException(status_code=503, detail="server halted")
        try:
            if action == "suspend":
                changed = await s.suspend()
            elif action == "resume":
                changed = await s.resume()
            else:
                changed = await s.halt()
        except ShellError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        logger.info("Gateway control request: %s (changed=%s)", action, changed)
        return ControlResponse(action=action, changed=changed)

    return app


# ---------------------------------------------------------------------------
# Embedded uvicorn server
# ---------------------------------------------------------------------------

class GatewayServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the shell."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def create_gateway(server: ShellServer, host: str = "127.0.0.1", port: int = 8080) -> GatewayServer:
    """Build an embedded gateway; run it with ``await gateway.serve()``."""
    config = uvicorn.Config(
        create_app(server), host=host, port=port, log_level="warning", lifespan="off"
    )
    return GatewayServer(config)
