"""Sync, recalculation and categorization response schemas"""

from datetime import datetime

from pydantic import BaseModel


class BackfillResponse(BaseModel):
    """Result of a manual sync"""
    success: bool
    message: str
    prs_processed: int
    reviews_processed: int
    users_created: int


class BackfillStatus(BaseModel):
    """Cursor state of a repository"""
    repo: str
    tracked: bool
    last_synced_at: datetime | None = None


class RecalculationResponse(BaseModel):
    total_reviews: int
    total_sessions: int
    total_xp_awarded: int
    users_updated: int


class CategorizeResponse(BaseModel):
    processed: int
    skipped: int
    errors: int
