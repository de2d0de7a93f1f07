from __future__ import annotations

from fastapi.testclient import TestClient

from k12_study.app import app


def test_health_route_returns_success() -> None:
    client = TestClient(app)

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
