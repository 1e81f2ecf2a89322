"""Scoring and session constants shared by the sync and recalculation paths."""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class ScoringRules:
    """Every magnitude used to group sessions and score them.

    Bump ``version`` whenever a value changes so stored XP can be traced to
    the formula that produced it; run a full recalculation afterwards.
    """

    version: str = "session-quality-v1"

    # Session grouping
    session_gap: timedelta = timedelta(hours=24)

    # Rejections
    drive_by_window: timedelta = timedelta(seconds=60)

    # Base and flat rate
    base_xp: int = 10
    per_comment_xp: int = 5

    # Quality tiers (quality_score 1-3 / 4-6 / 7-10)
    low_quality_xp: int = 2
    medium_quality_xp: int = 5
    high_quality_xp: int = 8
    medium_quality_min: int = 4
    high_quality_min: int = 7

    # Category bonuses
    logic_xp: int = 3
    structural_xp: int = 2

    # Depth bonuses
    thorough_threshold: int = 5
    thorough_xp: int = 5
    deep_threshold: int = 10
    deep_xp: int = 10

    # Fast review after a push
    fast_review_window: timedelta = timedelta(hours=1)
    fast_review_xp: int = 10


DEFAULT_RULES = ScoringRules()
