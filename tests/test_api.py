"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClock
from relay_broker.api.app import create_app
from relay_broker.models.config import BrokerConfig


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def app(fake_clock):
    return create_app(config=BrokerConfig(), clock=fake_clock, run_sweeper=False)


@pytest.fixture
def client(app):
    """Create a test client with fresh components."""
    with TestClient(app) as client:
        yield client


class TestAgentEndpoints:
    def test_register(self, client, app):
        response = client.post("/register", json={
            "clientId": "android-test",
            "deviceName": "Test Device",
        })
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert app.state.registry.get("android-test").display_name == "Test Device"

    def test_register_without_client_id(self, client):
        response = client.post("/register", json={"deviceName": "Test Device"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing clientId"

    def test_heartbeat_known_and_unknown(self, client):
        client.post("/register", json={"clientId": "dev"})
        assert client.post("/heartbeat", json={"clientId": "dev"}).json() == {"status": "ok"}
        assert client.post("/heartbeat", json={"clientId": "ghost"}).status_code == 200
        assert client.post("/heartbeat", json={}).status_code == 400

    def test_poll_delivers_queued_commands_once(self, client):
        client.post("/register", json={"clientId": "dev"})
        client.post("/command", json={"targetClientId": "dev", "command": "fetch"})
        client.post("/command", json={"targetClientId": "dev", "command": "upload"})

        first = client.get("/poll", params={"clientId": "dev"})
        assert first.status_code == 200
        assert [c["command"] for c in first.json()] == ["fetch", "upload"]

        second = client.get("/poll", params={"clientId": "dev"})
        assert second.json() == []

    def test_poll_items_use_camel_case_keys(self, client):
        client.post("/register", json={"clientId": "dev"})
        client.post("/command", json={"targetClientId": "dev", "command": "fetch"})

        item = client.get("/poll", params={"clientId": "dev"}).json()[0]
        assert set(item) == {"id", "command", "queuedAt"}

    def test_poll_without_client_id(self, client):
        assert client.get("/poll").status_code == 400

    def test_poll_unknown_device(self, client):
        response = client.get("/poll", params={"clientId": "ghost"})
        assert response.status_code == 200
        assert response.json() == []

    def test_response_is_always_accepted(self, client):
        response = client.post("/response", json={"clientId": "dev", "output": "ok"})
        assert response.status_code == 200
        assert response.json() == {"status": "received"}


class TestControllerEndpoints:
    def test_command_for_unknown_device(self, client):
        response = client.post("/command", json={
            "targetClientId": "nobody",
            "command": "fetch",
        })
        assert response.status_code == 404
        assert response.json()["detail"] == "Device not found"

    def test_command_for_registered_device(self, client):
        client.post("/register", json={"clientId": "dev"})
        response = client.post("/command", json={
            "targetClientId": "dev",
            "command": {"action": "fetch"},
        })
        assert response.status_code == 200
        assert response.json()["queued"] is True

    def test_devices_view(self, client, fake_clock):
        client.post("/register", json={"clientId": "dev", "deviceName": "Pixel"})
        client.post("/command", json={"targetClientId": "dev", "command": "fetch"})
        fake_clock.advance(30)

        data = client.get("/devices").json()
        assert data["dev"]["name"] == "Pixel"
        assert data["dev"]["online"] is False
        assert data["dev"]["pending"] == 1

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["devices"] == 0


class TestObserverStream:
    def test_initial_snapshot_then_live_events(self, client):
        client.post("/register", json={"clientId": "dev", "deviceName": "Pixel"})

        with client.websocket_connect("/ws") as ws:
            initial = ws.receive_json()
            assert initial["type"] == "devices"
            assert set(initial["devices"]) == {"dev"}

            client.post("/register", json={"clientId": "second"})
            update = ws.receive_json()
            assert set(update["devices"]) == {"dev", "second"}

            client.post("/response", json={"clientId": "dev", "output": "hello"})
            assert ws.receive_json() == {
                "type": "response",
                "clientId": "dev",
                "output": "hello",
            }

    def test_root_path_serves_the_same_stream(self, client):
        with client.websocket_connect("/") as ws:
            assert ws.receive_json() == {"type": "devices", "devices": {}}

    def test_command_submission_is_not_broadcast(self, client):
        client.post("/register", json={"clientId": "dev"})
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            client.post("/command", json={"targetClientId": "dev", "command": "fetch"})
            client.post("/response", json={"clientId": "dev", "output": "x"})
            assert ws.receive_json()["type"] == "response"
