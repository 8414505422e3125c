"""Shared test fixtures for the inventory tracker."""

import os
import tempfile
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# The app builds its engine at import time, so point it at a throwaway SQLite file first
APP_DB_PATH = Path(tempfile.mkdtemp(prefix="inventory-tracker-tests-")) / "app.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{APP_DB_PATH}"

from inventory_tracker import models  # noqa: E402,F401
from inventory_tracker.database import Base, enable_sqlite_foreign_keys  # noqa: E402


def make_session_factory(url: str):
    engine = create_async_engine(url)
    enable_sqlite_foreign_keys(engine)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(tmp_path):
    """A session on a fresh SQLite database with all tables created."""
    engine, factory = make_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'crud.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
async def unreachable_session(tmp_path):
    """A session whose database file cannot be opened."""
    engine, factory = make_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def client():
    """TestClient over the real app; the lifespan recreates the tables in an empty file."""
    from fastapi.testclient import TestClient
    from inventory_tracker.main import app

    APP_DB_PATH.unlink(missing_ok=True)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def widget(client):
    response = client.post(
        "/api/products",
        json={"name": "Widget", "description": "", "price": "9.99", "quantity": 10},
    )
    assert response.status_code == 201
    return response.json()
