# tests/test_meta/test_health.py

import uuid

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(monkeypatch):
    from movieshelf import main
    from movieshelf.api import meta

    async def _db_ok():
        return True

    monkeypatch.setattr(meta, "db_healthcheck", _db_ok)
    return TestClient(main.create_app())


def test_health_reports_ok_with_uptime(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["uptimeSeconds"] >= 0
    assert body["timestamp"].endswith("Z")


def test_liveness_and_readiness(client):
    assert client.get("/healthz").json() == {"ok": True}
    ready = client.get("/readyz").json()
    assert ready == {"ready": True, "checks": {"db": True, "redis": True}}


def test_readiness_reports_failed_dependency(client, monkeypatch):
    from movieshelf.api import meta

    async def _db_down():
        return False

    monkeypatch.setattr(meta, "db_healthcheck", _db_down)
    ready = client.get("/readyz").json()
    assert ready["ready"] is False
    assert ready["checks"]["db"] is False


def test_security_headers_and_request_id_are_set(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "DENY"
    assert "server" not in resp.headers
    uuid.UUID(resp.headers["X-Request-ID"])


def test_client_request_id_is_echoed(client):
    rid = str(uuid.uuid4())
    assert client.get("/healthz", headers={"X-Request-ID": rid}).headers["X-Request-ID"] == rid


def test_protected_routes_return_problem_json_without_token(client):
    resp = client.get("/api/v1/movies")
    assert resp.status_code == 401
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["status"] == 401
    assert body["detail"] == "Not authenticated"
    assert resp.headers.get("WWW-Authenticate") == "Bearer"


def test_validation_errors_return_problem_json(client):
    resp = client.post("/api/v1/auth/login", json={"email": "nope"})
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["errors"]
