"""
Tests for debug endpoints, health, and router mounting.
"""

from unittest.mock import patch

import pytest

from core.metrics import increment_counter
from tests.conftest import auth_header

SUPER = "aaaaaaaa-4444-4000-8000-000000000001"
SPECIALTY = "aaaaaaaa-4444-4000-8000-000000000002"


@pytest.fixture(autouse=True)
def seed(profiles):
    profiles.update({
        SUPER: {"id": SUPER, "role": "super_admin"},
        SPECIALTY: {"id": SPECIALTY, "role": "specialty_admin"},
    })


class TestDebugAccess:

    @pytest.mark.parametrize("path", ["/debug/config", "/debug/flags", "/debug/metrics"])
    def test_only_super_admin(self, client, path):
        assert client.get(path, headers=auth_header(SPECIALTY)).status_code == 403
        assert client.get(path).status_code == 403


class TestDebugConfig:

    def test_secrets_are_removed(self, client):
        response = client.get("/debug/config", headers=auth_header(SUPER))

        assert response.status_code == 200
        config = response.json()["config"]
        assert "SUPABASE_SERVICE_ROLE_KEY" not in config
        assert "SUPABASE_JWT_SECRET" not in config
        assert config["SUPABASE_URL"].startswith("https://")
        assert config["_metadata"]["missing_required"] == []

    def test_deploy_warnings(self, client, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "*")

        warnings = client.get("/debug/config", headers=auth_header(SUPER)).json()["warnings"]
        assert "CORS_ALLOW_ORIGINS" in warnings


class TestDebugFlags:

    def test_flags(self, client):
        with patch("router.debug.get_all_flags", return_value={"analytics.enabled": False}):
            response = client.get("/debug/flags", headers=auth_header(SUPER))

        assert response.json()["feature_flags"] == {"analytics.enabled": False}


class TestDebugMetrics:

    def test_metrics_summary(self, client):
        increment_counter("visibility.fail_open", labels={"reason": "lookup_error"})

        body = client.get("/debug/metrics", headers=auth_header(SUPER)).json()

        assert body["status"] == "ok"
        assert body["key_metrics"]["fail_open_total"] == 1
        assert body["key_metrics"]["rbac_allowed_total"] == 1
        assert "PASSWORD_RESET" in body["limiter"]["config"]

    def test_reset(self, client):
        increment_counter("visibility.fail_open", labels={"reason": "lookup_error"})

        client.get("/debug/metrics", params={"reset": True}, headers=auth_header(SUPER))
        body = client.get("/debug/metrics", headers=auth_header(SUPER)).json()

        assert body["key_metrics"]["fail_open_total"] == 0


class TestAppRoutes:

    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_all_routers_mounted(self, client):
        body = client.get("/debug/routers").json()

        assert body["failures"] == []
        assert set(body["mounted"]) == {
            "catalog", "interactions", "rep", "auth", "debug",
            "roles", "curation", "review", "companies", "analytics", "messages",
        }
