"""Tests for health and root endpoints."""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from crm.core.database import get_db
from crm.main import app, insecure_secrets


def test_health_connected(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["environment"] == "test"
    assert "X-Response-Time" in response.headers


def test_health_degraded_when_database_fails(client):
    broken = MagicMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
    app.dependency_overrides[get_db] = lambda: broken

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "disconnected"


def test_root(client):
    body = client.get("/").json()

    assert body["name"] == "SEO Dons CRM"
    assert body["status"] == "running"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_configured_secrets_are_not_flagged():
    assert insecure_secrets() == []
