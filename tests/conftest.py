"""Shared test fixtures for pytest."""

from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from alloctrack.metrics import metrics
from alloctrack.services import build_services
from alloctrack.storage import InMemoryStorage, SqlStorage


@pytest.fixture(autouse=True)
def reset_metrics():
    """Every test starts with empty counters."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def database_env(monkeypatch, tmp_path):
    """Point the settings at a fresh SQLite file for this test."""
    import alloctrack.config
    import alloctrack.db.engine

    db_url = f"sqlite+aiosqlite:///{tmp_path / 'alloctrack.db'}"
    monkeypatch.setenv("ALLOCTRACK_DATABASE_URL", db_url)
    monkeypatch.setenv("ALLOCTRACK_LOG_LEVEL", "WARNING")

    # Clear cached settings and engine so the new URL is picked up
    alloctrack.config.get_settings.cache_clear()
    alloctrack.db.engine._engine = None
    yield db_url
    alloctrack.config.get_settings.cache_clear()
    alloctrack.db.engine._engine = None


@pytest.fixture
def client(database_env):
    """Test client for the server, backed by an isolated SQLite database."""
    from fastapi.testclient import TestClient

    from alloctrack.server import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@asynccontextmanager
async def open_sql_storage(path):
    """SqlStorage over a fresh SQLite file at ``path``."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield SqlStorage(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def sql_storage(tmp_path):
    async with open_sql_storage(tmp_path / "core.db") as storage:
        yield storage


@pytest_asyncio.fixture(params=["memory", "sql"])
async def storage(request, tmp_path):
    """Each core test runs against both storage implementations."""
    if request.param == "memory":
        yield InMemoryStorage()
    else:
        async with open_sql_storage(tmp_path / "core.db") as sql:
            yield sql


@pytest.fixture
def services(storage):
    return build_services(storage)
