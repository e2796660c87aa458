"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against the injected test Database
  - No authentication required
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_reports_database_failure(client, database, monkeypatch):
    """A dead engine degrades the status instead of failing the request."""

    def broken_connect():
        raise RuntimeError("database is gone")

    monkeypatch.setattr(database.engine, "connect", broken_connect)
    data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any session cookie or header."""
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200
