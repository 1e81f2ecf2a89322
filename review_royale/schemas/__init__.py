"""Pydantic schemas for GitHub payloads and API responses"""

from review_royale.schemas.github import (
    GitHubCommit,
    GitHubPullRequest,
    GitHubRepo,
    GitHubReview,
    GitHubReviewComment,
    GitHubUser,
)
from review_royale.schemas.sync import (
    BackfillResponse,
    BackfillStatus,
    CategorizeResponse,
    RecalculationResponse,
)

__all__ = [
    "GitHubCommit",
    "GitHubPullRequest",
    "GitHubRepo",
    "GitHubReview",
    "GitHubReviewComment",
    "GitHubUser",
    "BackfillResponse",
    "BackfillStatus",
    "CategorizeResponse",
    "RecalculationResponse",
]
