"""Integration test fixtures: real Postgres via testcontainers.

Requires Docker to be running.
Run with: pytest tests/integration -v
"""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from insight.api import get_memory_store
from insight.cache import InMemoryCache
from insight.domain.orm import Base
from insight.store import MemoryStore, PostgresMemoryStore


@pytest.fixture(scope="session")
def pg_container():
    """Session-scoped PostgreSQL container."""
    from testcontainers.postgres import PostgresContainer

    pg = PostgresContainer("postgres:16-alpine")
    try:
        pg.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available: {exc}")
    try:
        yield pg
    finally:
        pg.stop()


@pytest.fixture(scope="session")
def pg_url(pg_container):
    """Async connection URL for the testcontainers Postgres instance."""
    # testcontainers gives us a psycopg2 URL; convert to asyncpg
    url = pg_container.get_connection_url()
    return url.replace("psycopg2", "asyncpg")


@pytest.fixture
async def async_engine(pg_url):
    """Create engine and initialize schema."""
    engine = create_async_engine(pg_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    """Provide an async session; schema is dropped after each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def memory_store(session_factory) -> MemoryStore:
    """Store backed by real Postgres and a fresh in-memory cache."""
    return MemoryStore(
        cache=InMemoryCache(),
        remote=PostgresMemoryStore(session_factory),
        read_timeout=5.0,
    )


@pytest.fixture
async def api_client(memory_store):
    """httpx client talking to the ASGI app with the Postgres-backed store."""
    from main import app

    app.dependency_overrides[get_memory_store] = lambda: memory_store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await memory_store.drain()
    app.dependency_overrides.clear()
