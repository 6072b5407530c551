import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["API_KEY"] = "test-api-key"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ticketdesk.deps import get_db
from ticketdesk.main import app
from ticketdesk.storage import models  # noqa: F401
from ticketdesk.storage.db import Base

TEST_API_KEY = "test-api-key"


@pytest_asyncio.fixture
async def engine():
    # One shared in-memory connection so every session sees the same tables.
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def override_db(session_factory):
    async def _get_db():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client_factory(override_db):
    """Build an AsyncClient against the app; headers default to a valid API key."""

    def _factory(headers=None, raise_app_exceptions=True):
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        return httpx.AsyncClient(
            transport=transport,
            base_url="http://test",
            headers={"X-API-KEY": TEST_API_KEY} if headers is None else headers,
        )

    return _factory


@pytest_asyncio.fixture
async def client(client_factory):
    async with client_factory() as c:
        yield c


@pytest.fixture
def ticket_payload():
    return {
        "title": "Login broken",
        "description": "Cannot log in",
        "priority": "HIGH",
    }
