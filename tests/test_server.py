import asyncio
from pathlib import Path

import httpx
import pytest
from conftest import CountingStore, FakeFactory, opens, pairs, saves
from fastapi.testclient import TestClient

from wagate.common.config import Config
from wagate.server.core import GatewayServer


def build_server(
    factory: FakeFactory, store: CountingStore, variant: str = "server", **overrides
) -> GatewayServer:
    overrides.setdefault("connect_on_startup", False)
    overrides.setdefault("reconnect_after_clear", False)
    overrides.setdefault("connect_timeout", 0.2)
    return GatewayServer(
        config=Config(variant), client_factory=factory, store=store, **overrides
    )


@pytest.fixture
def server(factory: FakeFactory, store: CountingStore) -> GatewayServer:
    return build_server(factory, store)


@pytest.fixture
def client(server: GatewayServer):
    with TestClient(server.app) as test_client:
        yield test_client


def test_server_routes(server: GatewayServer) -> None:
    routes = [route.path for route in server.app.routes]  # type: ignore[attr-defined]
    for path in ["/", "/status", "/qr", "/connect", "/send-message", "/clear-auth", "/health"]:
        assert path in routes


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["connected"] is False


def test_status_before_any_connection(client: TestClient) -> None:
    data = client.get("/status").json()

    assert data["connected"] is False
    assert data["qrAvailable"] is False
    assert data["botNumber"] is None
    assert "timestamp" in data


def test_send_message_while_disconnected(client: TestClient) -> None:
    response = client.post(
        "/send-message", json={"phone": "081234567890", "message": "hi"}
    )

    assert response.status_code == 503
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "NotConnected"


@pytest.mark.parametrize(
    "body",
    [{"phone": "081234567890"}, {"message": "hi"}, {"phone": "", "message": "hi"}],
)
def test_send_message_requires_fields(client: TestClient, body: dict) -> None:
    response = client.post("/send-message", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_send_message_without_body(client: TestClient) -> None:
    response = client.post("/send-message")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_connect_then_send(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(opens)

    connect = client.post("/connect").json()
    response = client.post(
        "/send-message", json={"phone": "0812-3456-7890", "message": "hi"}
    )

    assert connect == {"success": True, "connected": True}
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["to"] == "6281234567890"
    assert data["messageId"] == "MSG1"
    assert factory.last.sent == [("6281234567890@s.whatsapp.net", "hi")]

    status = client.get("/status").json()
    assert status["connected"] is True
    assert status["botNumber"] == "6281111111111"


def test_send_to_unregistered_number(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(opens)
    client.post("/connect")
    factory.last.registered = set()

    response = client.post("/send-message", json={"phone": "62899", "message": "hi"})

    assert response.status_code == 404
    assert response.json()["error"] == "RecipientNotFound"


def test_send_failure_from_client(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(opens)
    client.post("/connect")
    factory.last.fail_send = True

    response = client.post("/send", json={"phone": "6281234567890", "message": "hi"})

    assert response.status_code == 500
    assert response.json()["error"] == "SendFailed"


def test_connect_needing_pairing(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(pairs("2@abc"))

    data = client.post("/connect").json()

    assert data["success"] is True
    assert data["connected"] is False
    assert data["needsScan"] is True
    assert data["qr"] == "2@abc"


def test_connect_timeout(client: TestClient) -> None:
    response = client.post("/connect")

    assert response.status_code == 504
    assert response.json()["error"] == "ConnectTimeout"


def test_qr_starts_connection(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(pairs("2@abc"))

    response = client.get("/qr")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["qr"] == "2@abc"
    assert client.get("/status").json()["qrAvailable"] is True


def test_qr_when_connected(client: TestClient, factory: FakeFactory) -> None:
    factory.plan(opens)
    client.post("/connect")

    data = client.get("/qr").json()

    assert data["success"] is False
    assert data["message"] == "Already connected"


def test_qr_unavailable(client: TestClient) -> None:
    response = client.get("/qr")

    assert response.status_code == 503
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "PairingUnavailable"


def test_clear_auth_while_connected(
    client: TestClient, factory: FakeFactory, store: CountingStore
) -> None:
    factory.plan(saves(creds=b"secret"), opens)
    client.post("/connect")
    assert store.keys() == ["creds"]

    response = client.post("/clear-auth")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Auth cleared successfully"}
    assert factory.last.closed is True
    assert store.keys() == []
    assert client.get("/status").json()["connected"] is False


def test_dashboard_page(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "const API = '';" in response.text


def test_unknown_endpoint(client: TestClient) -> None:
    response = client.get("/nope")

    assert response.status_code == 404
    assert "/status" in response.json()["available"]


def test_shutdown_closes_session(server: GatewayServer, factory: FakeFactory) -> None:
    factory.plan(opens)
    with TestClient(server.app) as test_client:
        test_client.post("/connect")

    assert factory.last.closed is True


def test_serverless_variant(factory: FakeFactory, tmp_path: Path) -> None:
    server = build_server(factory, CountingStore(tmp_path / "auth"), "serverless")
    factory.plan(opens)

    with TestClient(server.app) as test_client:
        assert test_client.get("/api/status").status_code == 200
        assert test_client.get("/status").status_code == 404
        assert "const API = '/api';" in test_client.get("/api").text

        test_client.post("/api/connect")
        response = test_client.post(
            "/api/send",
            json={"phone": "081234567890", "message": "hi"},
            headers={"Origin": "https://example.com"},
        )
        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers

        cleared = test_client.post("/api/clear").json()
        assert cleared["success"] is True


def test_document_variant_has_no_dashboard(factory: FakeFactory, tmp_path: Path) -> None:
    server = build_server(factory, CountingStore(tmp_path / "auth"), "document")

    with TestClient(server.app) as test_client:
        assert test_client.get("/").status_code == 404
        assert test_client.get("/health").status_code == 200


@pytest.mark.asyncio
async def test_status_answers_during_slow_connect(factory: FakeFactory, tmp_path: Path) -> None:
    server = build_server(
        factory, CountingStore(tmp_path / "auth"), "serverless", connect_timeout=2.0
    )
    factory.connect_delay = 1.0
    transport = httpx.ASGITransport(app=server.app)

    async with httpx.AsyncClient(transport=transport, base_url="http://gateway") as http:
        connect = asyncio.ensure_future(http.post("/api/connect"))
        await asyncio.sleep(0.05)

        status = await asyncio.wait_for(http.get("/api/status"), 0.5)
        health = await asyncio.wait_for(http.get("/api/health"), 0.5)

        assert status.json()["status"] == "connecting"
        assert health.status_code == 200
        await server.manager.shutdown()
        assert (await connect).status_code == 502
