"""Tests for the assembled application (middleware, error envelope, metrics)."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from cardiva.web.app import app


@pytest.fixture
def client():
    return TestClient(app)


class TestApplication:
    def test_http_errors_use_result_envelope(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not authenticated"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/auth/me", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200

    def test_all_routers_are_mounted(self):
        paths = set(app.openapi()["paths"])

        assert {
            "/health",
            "/auth/login",
            "/auth/register",
            "/auth/password",
            "/api/rfps/upload",
            "/api/rfps/{job_id}/items",
            "/api/rfps/{job_id}/export",
            "/api/inventory",
            "/api/inventory/search",
            "/api/dashboard/stats",
            "/api/admin/settings/email",
            "/api/admin/settings/inventory-columns",
            "/api/events/jobs",
        } <= paths
