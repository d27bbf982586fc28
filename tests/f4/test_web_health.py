"""Tests for health endpoint."""


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health_returns_ok(self, client):
        """Health endpoint returns status ok."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_returns_version_and_timestamp(self, client):
        data = client.get("/health").json()
        assert data["version"] == "0.1.0"
        assert "T" in data["timestamp"]

    def test_database_created_under_tmp(self, client, app_env):
        """Startup initializes the redirected database, not ./db."""
        assert (app_env / "test.db").exists()
        assert not (app_env / "db").exists()
