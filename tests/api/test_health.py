from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # Neither store is configured under test.
    assert data["checks"] == {
        "database": "not_configured",
        "redis": "not_configured",
    }


def test_health_reports_degraded_database(client: TestClient, monkeypatch) -> None:
    from app.api import health

    async def _down() -> bool:
        return False

    monkeypatch.setattr(health, "ping_database", _down)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["database"] == "degraded"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_ready_returns_503_when_database_down(client: TestClient, monkeypatch) -> None:
    from app.api import health

    async def _down() -> bool:
        return False

    monkeypatch.setattr(health, "ping_database", _down)
    assert client.get("/ready").status_code == 503


def test_health_is_not_rate_limited(client: TestClient) -> None:
    statuses = {client.get("/health").status_code for _ in range(40)}
    assert statuses == {200}
