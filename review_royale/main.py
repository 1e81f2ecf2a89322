import asyncio
import logging

from fastapi import FastAPI

from .api import sync
from .config import get_settings
from .core.database import async_session_factory, close_db, init_db
from .processor import SyncScheduler

# ==========================
# Settings & Logging
# ==========================

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger("review-royale")

# FastAPI app
app = FastAPI(title=settings.app_name)

# Include API routers
app.include_router(sync.router)

_sync_task: asyncio.Task | None = None


# ==========================
# Lifecycle Events
# ==========================

@app.on_event("startup")
async def startup_event():
    """Initialize database and start the background sync loop"""
    global _sync_task

    await init_db()
    logger.info("Database initialized")

    if settings.sync_enabled:
        scheduler = SyncScheduler(
            async_session_factory,
            interval_seconds=settings.sync_interval_hours * 60 * 60,
            max_age_days=settings.sync_max_age_days,
            repo_delay_seconds=settings.sync_repo_delay_seconds,
        )
        _sync_task = asyncio.create_task(scheduler.run())
        logger.info(f"Background sync enabled (every {settings.sync_interval_hours}h)")

    logger.info("Application started")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sync loop and close database connections"""
    if _sync_task is not None:
        _sync_task.cancel()
        try:
            await _sync_task
        except asyncio.CancelledError:
            pass
    await close_db()
    logger.info("Application shutdown")


# ==========================
# Routes
# ==========================

@app.get("/health")
async def health():
    return {"status": "ok"}
