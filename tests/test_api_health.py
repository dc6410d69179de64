"""
Tests for dealerchat/api/health.py and the app factory wiring.
"""
import pytest
import httpx
from datetime import datetime
from unittest.mock import MagicMock, patch

from fastapi import FastAPI

from dealerchat.api.health import health_check, readiness_check
from dealerchat.main import build_conductor, create_app, lifespan
from dealerchat.services.lead_store import NullLeadStore, SqlLeadStore


def _request(**state):
    request = MagicMock()
    request.app.state = MagicMock(spec=[])
    for key, value in state.items():
        setattr(request.app.state, key, value)
    return request


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


class TestHealthCheck:
    async def test_returns_healthy(self):
        result = await health_check()
        assert result["status"] == "healthy"
        assert result["version"] == "1.0.0"
        parsed = datetime.fromisoformat(result["timestamp"])
        assert parsed.tzinfo is not None


# ---------------------------------------------------------------------------
# GET /health/ready
# ---------------------------------------------------------------------------


class TestReadinessCheck:
    async def test_ready_with_database(self, settings, session_factory):
        request = _request(
            conductor=build_conductor(settings, session_factory),
            session_factory=session_factory,
        )
        result = await readiness_check(request)
        assert result["status"] == "ready"
        assert result["checks"]["database"] is True
        assert result["checks"]["ai_configured"] is False

    async def test_ready_without_database(self, settings):
        request = _request(conductor=build_conductor(settings), session_factory=None)
        result = await readiness_check(request)
        assert result["status"] == "ready"
        assert result["checks"]["database"] is None

    async def test_database_failure_degrades(self, settings):
        def broken_factory():
            raise RuntimeError("connection refused")

        request = _request(conductor=build_conductor(settings), session_factory=broken_factory)
        result = await readiness_check(request)
        assert result["status"] == "degraded"
        assert result["checks"]["database"] is False

    async def test_no_conductor_degrades(self):
        result = await readiness_check(_request())
        assert result["status"] == "degraded"


class TestAppFactory:
    async def test_correlation_id_echoed(self):
        app = create_app()
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"] == "abc-123"

    async def test_correlation_id_generated(self):
        app = create_app()
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
        assert response.headers["X-Correlation-ID"]

    def test_null_store_without_database(self, settings):
        assert isinstance(build_conductor(settings).store, NullLeadStore)
        assert isinstance(build_conductor(settings, MagicMock()).store, SqlLeadStore)

    async def test_lifespan_wires_null_store_without_database(self, settings):
        app = FastAPI()
        with (
            patch("dealerchat.main.get_settings", return_value=settings),
            patch("dealerchat.main.get_session_factory", return_value=None),
        ):
            async with lifespan(app):
                assert isinstance(app.state.conductor.store, NullLeadStore)
                assert app.state.session_factory is None
