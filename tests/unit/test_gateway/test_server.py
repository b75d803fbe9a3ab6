"""Tests for the HTTP gateway."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from dhtshell.backend import InMemoryBackend
from dhtshell.commands import build_registry
from dhtshell.gateway.server import GatewayServer, create_app, create_gateway
from dhtshell.shell.server import ShellServer


@pytest.fixture
def server(backend: InMemoryBackend) -> ShellServer:
    asyncio.run(backend.start())
    return ShellServer(backend, build_registry())


@pytest.fixture
def client(server: ShellServer) -> TestClient:
    return TestClient(create_app(server))


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "accepting": False, "suspended": False, "sessions": 0}

    def test_status(self, client: TestClient) -> None:
        resp = client.get("/status")
        assert resp.status_code == 200
        assert resp.json()["node_id"] == "test-node"


class TestKeys:
    def test_put_then_get(self, client: TestClient) -> None:
        resp = client.put("/keys/color", json={"values": ["red", "blue"], "ttl": 30})
        assert resp.status_code == 200
        assert resp.json() == {"key": "color", "values": ["red", "blue"]}
        assert client.get("/keys/color").json()["values"] == ["red", "blue"]

    def test_get_missing(self, client: TestClient) -> None:
        assert client.get("/keys/nothing").json() == {"key": "nothing", "values": []}

    def test_put_validation(self, client: TestClient) -> None:
        assert client.put("/keys/k", json={"values": []}).status_code == 422
        assert client.put("/keys/k", json={"values": ["v"], "ttl": 0}).status_code == 422

    def test_delete_with_secret(self, client: TestClient) -> None:
        client.put("/keys/k", json={"values": ["a", "b"], "secret": "s"})
        resp = client.delete("/keys/k", params={"secret": "s", "value": ["a"]})
        assert resp.status_code == 200
        assert resp.json() == {"key": "k", "values": ["a"]}
        assert client.get("/keys/k").json()["values"] == ["b"]

    def test_delete_requires_secret(self, client: TestClient) -> None:
        assert client.delete("/keys/k").status_code == 422


class TestControl:
    def test_suspend_makes_writes_fail(self, client: TestClient) -> None:
        resp = client.post("/control/suspend")
        assert resp.json() == {"action": "suspend", "changed": True}
        assert client.get("/health").json()["suspended"] is True
        assert client.put("/keys/k", json={"values": ["v"]}).status_code == 400
        assert client.post("/control/resume").json()["changed"] is True
        assert client.put("/keys/k", json={"values": ["v"]}).status_code == 200

    def test_halt(self, client: TestClient, server: ShellServer) -> None:
        assert client.post("/control/halt").json() == {"action": "halt", "changed": True}
        assert server.is_halted
        assert server.backend.is_stopped
        assert client.get("/health").json()["status"] == "halted"
        assert client.get("/status").status_code == 503
        assert client.post("/control/resume").status_code == 503

    def test_unknown_action(self, client: TestClient) -> None:
        assert client.post("/control/reboot").status_code == 422


class TestEmbeddedServer:
    def test_create_gateway(self, server: ShellServer) -> None:
        gateway = create_gateway(server, host="127.0.0.1", port=9001)
        assert isinstance(gateway, GatewayServer)
        assert gateway.config.port == 9001
        with gateway.capture_signals():
            pass
