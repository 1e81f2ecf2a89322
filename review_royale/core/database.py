"""Async database engine, session factory and model base"""

import logging
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from review_royale.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

Base = declarative_base()

engine = create_async_engine(settings.database_url, pool_pre_ping=True)

# Passed explicitly to the sync, recalculation and achievement services
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session"""
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """
    Create all tables that don't exist yet.
    """
    # Import models so they register on Base.metadata
    import review_royale.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    """Dispose of pooled connections"""
    await engine.dispose()
