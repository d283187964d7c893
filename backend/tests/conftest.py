"""
OrderDesk Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped, created fresh for each test):
    ├── db_engine: in-memory SQLite engine with the schema created
    ├── db_session: AsyncSession bound to db_engine (service tests)
    ├── mock_db_session: AsyncMock session (driver-failure tests)
    ├── make_submission: builds OrderSubmission payloads
    └── test_client: HTTPX AsyncClient against a fresh app whose
                     get_db_session dependency yields db_engine sessions
"""

import os
from typing import Any, AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any orderdesk imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["PASSWORD_RESET_EMAIL"] = "admin@example.com"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orderdesk.database import Base, get_db_session
from orderdesk.models.order import Order  # noqa: F401
from orderdesk.models.user import User  # noqa: F401
from orderdesk.schemas.order import OrderSubmission


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite database shared by every session of one test.

    StaticPool keeps a single connection alive, otherwise each new
    connection would see an empty in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT 1", {}, Exception())
        with pytest.raises(DatabaseError):
            await order_service.list_orders(mock_db_session, page=1, limit=10)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def make_submission():
    """Factory for OrderSubmission payloads from plain JSON-like dicts."""
    def _make(**fields: Any) -> OrderSubmission:
        return OrderSubmission.model_validate(fields)
    return _make


@pytest.fixture
def order_document() -> Dict[str, Any]:
    """A typical order as the storefront submits it."""
    return {
        "iqama": "2456789012",
        "mobile": "0551234567",
        "orderDate": "2026-03-01T10:00:00+00:00",
        "name": "Abdullah",
        "city": "Riyadh",
        "items": [{"sku": "SHEEP-L", "quantity": 1}],
    }


@pytest_asyncio.fixture
async def test_client(db_engine):
    """
    Provides an async HTTP test client for endpoint testing.

    How:   Builds a fresh app and overrides get_db_session so requests run
           against the test database. The lifespan does not run under
           ASGITransport, so no production engine is created.

    Usage:
        async def test_root(test_client):
            response = await test_client.get("/")
            assert response.status_code == 200
    """
    from orderdesk.main import create_app

    app = create_app()
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session_override

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
