"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.pool import StaticPool

from dealerchat.config import Settings
from dealerchat.database import Base
import dealerchat.models  # noqa: F401  registers every table on Base.metadata


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def session_factory():
    """Session factory over one shared in-memory SQLite connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    """A single session, for tests that inspect rows directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    """Settings with every external collaborator switched off."""
    return Settings(
        _env_file=None,
        database_url="",
        anthropic_api_key="",
        openai_api_key="",
        sms_api_key="",
    )


@pytest.fixture
def fake_clock():
    """Mutable clock for the abuse guard. Advance with clock.now += seconds."""

    class FakeClock:
        def __init__(self):
            self.now = 1_700_000_000.0

        def __call__(self) -> float:
            return self.now

    return FakeClock()


@pytest.fixture
def fixed_today():
    return lambda: date(2026, 10, 19)


@pytest.fixture
def mock_ai():
    """Mock for AIService.generate - prevents real AI API calls in tests."""
    with patch("dealerchat.services.ai.AIService.generate", new_callable=AsyncMock) as mock:
        mock.return_value = {
            "content": "Claro, el Seal es un sedán deportivo. ¿Te gustaría agendar una prueba de manejo?",
            "provider": "anthropic",
            "model": "claude-sonnet-4-20250514",
            "latency_ms": 500,
            "cost_usd": 0.001,
            "input_tokens": 100,
            "output_tokens": 50,
            "error": None,
        }
        yield mock
