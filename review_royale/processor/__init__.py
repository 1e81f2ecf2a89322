"""Session grouping, scoring, sync and recalculation"""

from review_royale.processor.achievements import Achievement, AchievementChecker, Role
from review_royale.processor.backfill import Backfiller, SyncProgress
from review_royale.processor.categorize import CategorizeError, CategorizeStats, OpenAIClassifier, categorize_batch
from review_royale.processor.recalculate import RecalculationStats, recalculate_all_xp
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules
from review_royale.processor.scheduler import SyncScheduler
from review_royale.processor.scoring import QualityAggregate, score_session
from review_royale.processor.sessions import ReviewSession, build_sessions, latest_commit_before

__all__ = [
    "Achievement",
    "AchievementChecker",
    "Role",
    "Backfiller",
    "SyncProgress",
    "CategorizeError",
    "CategorizeStats",
    "OpenAIClassifier",
    "categorize_batch",
    "RecalculationStats",
    "recalculate_all_xp",
    "DEFAULT_RULES",
    "ScoringRules",
    "SyncScheduler",
    "QualityAggregate",
    "score_session",
    "ReviewSession",
    "build_sessions",
    "latest_commit_before",
]
