"""Database models for Review Royale"""

from review_royale.models.user import User, level_for_xp
from review_royale.models.repository import Repository
from review_royale.models.pull_request import Commit, PrState, PullRequest
from review_royale.models.review import Review, ReviewComment, ReviewState
from review_royale.models.user_achievement import UserAchievement

__all__ = [
    "User",
    "level_for_xp",
    "Repository",
    "PullRequest",
    "PrState",
    "Commit",
    "Review",
    "ReviewState",
    "ReviewComment",
    "UserAchievement",
]
