"""Grouping of one reviewer's review events on a pull request into sessions."""

import bisect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence

from review_royale.processor.rules import DEFAULT_RULES, ScoringRules


class ReviewEvent(Protocol):
    state: str
    comments_count: int
    submitted_at: datetime


class CommitEvent(Protocol):
    committed_at: datetime


@dataclass
class ReviewSession:
    """A continuous review effort: consecutive events with no long gap or push between them."""

    reviews: List[ReviewEvent] = field(default_factory=list)

    @property
    def started_at(self) -> datetime:
        return min(r.submitted_at for r in self.reviews)

    @property
    def ended_at(self) -> datetime:
        return max(r.submitted_at for r in self.reviews)

    @property
    def total_comments(self) -> int:
        return sum(r.comments_count or 0 for r in self.reviews)

    @property
    def first_review(self) -> ReviewEvent:
        return self.reviews[0]

    @property
    def states(self) -> set:
        return {r.state for r in self.reviews}


def _commit_between(commit_times: Sequence[datetime], after: datetime, before: datetime) -> bool:
    """True when some commit time t satisfies after < t < before."""
    i = bisect.bisect_right(commit_times, after)
    return i < len(commit_times) and commit_times[i] < before


def build_sessions(
    reviews: Iterable[ReviewEvent],
    commits: Iterable[CommitEvent],
    rules: ScoringRules = DEFAULT_RULES,
) -> List[ReviewSession]:
    """Group one reviewer's reviews on one PR into chronological sessions.

    A new session starts when the gap to the previous review exceeds
    ``rules.session_gap`` or a commit landed strictly between the two.
    """
    ordered = sorted(reviews, key=lambda r: r.submitted_at)
    if not ordered:
        return []

    commit_times = sorted(c.committed_at for c in commits)

    sessions: List[ReviewSession] = []
    current = ReviewSession(reviews=[ordered[0]])
    for prev, review in zip(ordered, ordered[1:]):
        t_prev, t_next = prev.submitted_at, review.submitted_at
        if t_next - t_prev > rules.session_gap or _commit_between(commit_times, t_prev, t_next):
            sessions.append(current)
            current = ReviewSession(reviews=[review])
        else:
            current.reviews.append(review)
    sessions.append(current)

    return sessions


def latest_commit_before(commits: Iterable[CommitEvent], when: datetime) -> Optional[datetime]:
    """Most recent commit time strictly before ``when``."""
    earlier = [c.committed_at for c in commits if c.committed_at < when]
    return max(earlier) if earlier else None
