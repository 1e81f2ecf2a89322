"""Scoring of one (pull request, reviewer) group, shared by sync and recalculation."""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from review_royale.models import Commit, Review, User
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules
from review_royale.processor.scoring import QualityAggregate, score_session
from review_royale.processor.sessions import ReviewSession, build_sessions, latest_commit_before


@dataclass
class ScoredSession:
    session: ReviewSession
    xp: int


def score_group(
    reviews: Iterable[Review],
    commits: Sequence[Commit],
    quality: Optional[QualityAggregate] = None,
    rules: ScoringRules = DEFAULT_RULES,
) -> List[ScoredSession]:
    """Build sessions for one reviewer on one PR and score each of them."""
    scored = []
    for session in build_sessions(reviews, commits, rules):
        prior_commit = latest_commit_before(commits, session.started_at)
        scored.append(ScoredSession(session, score_session(session, prior_commit, quality, rules)))
    return scored


def apply_online_awards(user: User, scored: Iterable[ScoredSession]) -> int:
    """Top up XP for sessions whose score grew since they were last awarded.

    The XP already granted for a session is the sum of ``xp_earned`` over its
    reviews. Only the positive difference is added; the session's first
    review then carries the full score and the others carry 0. Returns the
    XP added.
    """
    added = 0
    for item in scored:
        reviews = item.session.reviews
        awarded = sum(r.xp_earned or 0 for r in reviews)
        if item.xp <= awarded:
            continue
        added += item.xp - awarded
        for review in reviews:
            review.xp_earned = 0
        item.session.first_review.xp_earned = item.xp

    if added:
        user.add_xp(added)
    return added
