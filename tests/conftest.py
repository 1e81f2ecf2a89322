"""Pytest configuration for the Review Royale test suite."""

import os

# Settings are cached on first import; point them at an in-memory database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GITHUB_TOKEN", "test-token")
os.environ.setdefault("SYNC_ENABLED", "false")

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from review_royale.core.database import Base
import review_royale.models  # noqa: F401


@pytest_asyncio.fixture
async def session_factory():
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()
