"""Tests for the health endpoint and app-wide error handling."""

from fastapi.testclient import TestClient

from tutoring import __version__
from tutoring.web.api import create_app
from tutoring.web.deps import get_backend_dep


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health_returns_ok(self, api_client):
        """Health endpoint returns status ok."""
        response = api_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["message"] == "Server is running"

    def test_health_returns_version(self, api_client):
        """Health endpoint returns the package version."""
        data = api_client.get("/health").json()
        assert data["version"] == __version__

    def test_health_returns_timestamp(self, api_client):
        """Health endpoint returns an ISO timestamp."""
        data = api_client.get("/health").json()
        assert "T" in data["timestamp"]


class TestErrorHandling:
    """Tests for framework-level error responses."""

    def test_unknown_route_is_404(self, api_client):
        """Unknown paths answer 404 with a detail body."""
        response = api_client.get("/api/nope")
        assert response.status_code == 404
        assert "detail" in response.json()

    def test_unhandled_exception_is_500(self):
        """Unexpected errors become a generic 500."""

        def broken_backend():
            raise RuntimeError("boom")

        app = create_app()
        app.dependency_overrides[get_backend_dep] = broken_backend
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post("/api/login", json={"email": "a@b.c", "password": "secret123"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

    def test_unconfigured_backend_is_500(self):
        """Without Supabase credentials, backend-bound routes answer 500."""
        client = TestClient(create_app())

        response = client.post("/api/login", json={"email": "a@b.c", "password": "secret123"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Backend is not configured"
