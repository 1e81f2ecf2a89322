"""XP for a review session.

Canonical formula (``ScoringRules.version``):

- rubber stamp (no comments, no approve/request-changes) scores 0;
- drive-by approval (no comments, state change, under a minute) scores 0;
- otherwise base XP, plus comment XP (flat per comment, or quality-weighted
  when categorization data is available), plus depth and fast-review bonuses.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from review_royale.models.review import ReviewState
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules
from review_royale.processor.sessions import ReviewSession

STATE_CHANGES = {ReviewState.APPROVED.value, ReviewState.CHANGES_REQUESTED.value}


@dataclass(frozen=True)
class QualityAggregate:
    """Categorized comment counts for one (pull request, reviewer)."""

    low: int = 0
    medium: int = 0
    high: int = 0
    logic: int = 0
    structural: int = 0
    other: int = 0
    categorized_count: int = 0


def _comment_xp(total_comments: int, quality: Optional[QualityAggregate], rules: ScoringRules) -> int:
    if quality is None:
        return total_comments * rules.per_comment_xp

    uncategorized = max(total_comments - quality.categorized_count, 0)
    return (
        quality.low * rules.low_quality_xp
        + quality.medium * rules.medium_quality_xp
        + quality.high * rules.high_quality_xp
        + uncategorized * rules.per_comment_xp
        + quality.logic * rules.logic_xp
        + quality.structural * rules.structural_xp
    )


def score_session(
    session: ReviewSession,
    prior_commit_time: Optional[datetime] = None,
    quality: Optional[QualityAggregate] = None,
    rules: ScoringRules = DEFAULT_RULES,
) -> int:
    """Return the XP earned by ``session``. Pure and deterministic."""
    total_comments = session.total_comments
    has_state_change = bool(session.states & STATE_CHANGES)

    if total_comments == 0:
        if not has_state_change:
            return 0
        if session.ended_at - session.started_at < rules.drive_by_window:
            return 0

    xp = rules.base_xp + _comment_xp(total_comments, quality, rules)

    if total_comments > rules.thorough_threshold:
        xp += rules.thorough_xp
    if total_comments > rules.deep_threshold:
        xp += rules.deep_xp

    if prior_commit_time is not None:
        delay = session.started_at - prior_commit_time
        if delay.total_seconds() > 0 and delay < rules.fast_review_window:
            xp += rules.fast_review_xp

    return xp
