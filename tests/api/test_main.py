"""
Tests for main application startup and health checks.
"""

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from raporpaud.core.schemas import User
from raporpaud.main import app, create_app, lifespan


class TestHealthEndpoints:
    """Test all health check endpoints."""

    async def test_root_endpoint(self, client: AsyncClient) -> None:
        """Test root endpoint returns service info."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Rapor PAUD Sync Service"
        assert data["status"] == "operational"
        assert data["version"] == "0.1.0"
        assert "environment" in data

    async def test_health_check_healthy(self, client: AsyncClient) -> None:
        """Test /health reports engine, cache and remote mode."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["local_cache"]["status"] == "healthy"
        assert data["checks"]["remote_store"]["mode"] == "online"

    async def test_health_check_without_engine(self) -> None:
        """Test /health is unhealthy before startup."""
        transport = ASGITransport(app=create_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["engine"]["status"] == "unhealthy"

    async def test_readiness_check_ready(self, client: AsyncClient) -> None:
        """Test /health/ready with a started engine."""
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    async def test_readiness_check_not_ready(self) -> None:
        """Test /health/ready before startup."""
        transport = ASGITransport(app=create_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready"}

    async def test_liveness_check(self, client: AsyncClient) -> None:
        """Test /health/live endpoint always returns alive."""
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_api_requires_started_engine(self) -> None:
        """Test API routes answer 503 before startup."""
        transport = ASGITransport(app=create_app())
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/v1/state")

        assert response.status_code == 503


class TestLifespan:
    """Test startup and shutdown."""

    async def test_lifespan_starts_injected_engine(self, offline_engine, cache) -> None:
        cache.save_user(User(username="guru", name="Guru Kelas", role="teacher"))
        test_app = create_app(engine=offline_engine)

        async with lifespan(test_app):
            assert offline_engine.user is not None
            assert offline_engine.user.username == "guru"

        assert test_app.state.engine is offline_engine

    async def test_lifespan_creates_engine_from_settings(self, offline_engine) -> None:
        test_app = create_app()
        with patch("raporpaud.main.SyncEngine.from_settings", return_value=offline_engine):
            async with lifespan(test_app):
                assert test_app.state.engine is offline_engine

        assert test_app.state.engine is None


class TestAppConfiguration:
    """Test app metadata."""

    def test_app_metadata(self) -> None:
        assert app.title == "Rapor PAUD Sync Service"
        assert app.version == "0.1.0"

    @pytest.mark.parametrize(
        "path",
        [
            "/api/v1/state",
            "/api/v1/admin/orphans",
            "/api/v1/admin/backup",
            "/api/v1/notifications",
            "/api/v1/records/{collection}",
            "/api/v1/settings",
            "/api/v1/images/{folder}",
        ],
    )
    def test_routes_registered(self, path: str) -> None:
        assert path in app.openapi()["paths"]
