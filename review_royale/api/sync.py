"""Sync, recalculation and categorization API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from review_royale.config import get_settings
from review_royale.core.database import async_session_factory, get_db
from review_royale.github_client import GitHubClient, RateLimitedError
from review_royale.models import Repository
from review_royale.processor import (
    Backfiller,
    CategorizeError,
    OpenAIClassifier,
    categorize_batch,
    recalculate_all_xp,
)
from review_royale.schemas.sync import (
    BackfillResponse,
    BackfillStatus,
    CategorizeResponse,
    RecalculationResponse,
)

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api", tags=["sync"])


@router.post("/backfill/{owner}/{name}", response_model=BackfillResponse)
async def trigger_backfill(
    owner: str,
    name: str,
    max_days: int = Query(365, ge=1),
    force: bool = False,
):
    """Sync a repository now"""
    logger.info(f"Sync requested for {owner}/{name} (max_days: {max_days}, force: {force})")

    try:
        async with GitHubClient() as client:
            backfiller = Backfiller(async_session_factory, client, max_days)
            progress = await backfiller.backfill_repo(owner, name, force=force)
    except RateLimitedError as e:
        raise HTTPException(
            status_code=429,
            detail=f"Rate limited, retry after {e.retry_after} seconds",
            headers={"Retry-After": str(e.retry_after)},
        )
    except Exception as e:
        logger.exception(f"Backfill failed for {owner}/{name}")
        raise HTTPException(status_code=502, detail="Backfill failed") from e

    return BackfillResponse(
        success=True,
        message=f"Backfill complete for {owner}/{name}",
        prs_processed=progress.prs_processed,
        reviews_processed=progress.reviews_processed,
        users_created=progress.users_created,
    )


@router.get("/backfill/{owner}/{name}", response_model=BackfillStatus)
async def backfill_status(owner: str, name: str, db: AsyncSession = Depends(get_db)):
    """Cursor state of a repository"""
    result = await db.execute(
        select(Repository).where(Repository.owner == owner, Repository.name == name)
    )
    repo = result.scalars().first()

    return BackfillStatus(
        repo=f"{owner}/{name}",
        tracked=repo is not None,
        last_synced_at=repo.last_synced_at if repo else None,
    )


@router.post("/recalculate", response_model=RecalculationResponse)
async def recalculate():
    """Recompute all XP from stored reviews"""
    stats = await recalculate_all_xp(async_session_factory)
    return RecalculationResponse(
        total_reviews=stats.total_reviews,
        total_sessions=stats.total_sessions,
        total_xp_awarded=stats.total_xp_awarded,
        users_updated=stats.users_updated,
    )


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize(batch_size: int = Query(settings.categorize_batch_size, ge=1, le=200)):
    """Classify a batch of uncategorized review comments"""
    if not settings.openai_api_key:
        raise HTTPException(status_code=503, detail="OpenAI API key not configured")

    try:
        stats = await categorize_batch(async_session_factory, OpenAIClassifier(), batch_size)
    except CategorizeError as e:
        logger.warning(f"Categorization failed: {e}")
        raise HTTPException(status_code=502, detail="Categorization failed") from e

    return CategorizeResponse(processed=stats.processed, skipped=stats.skipped, errors=stats.errors)
