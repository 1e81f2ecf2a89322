"""Achievement definitions, progress and unlocking"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from review_royale.models import Commit, PrState, PullRequest, Review, UserAchievement
from review_royale.processor.rules import DEFAULT_RULES
from review_royale.processor.sessions import latest_commit_before

logger = logging.getLogger(__name__)

NIGHT_END_HOUR = 6


class Role(str, enum.Enum):
    REVIEWER = "reviewer"
    AUTHOR = "author"


@dataclass
class ActivityCounts:
    """Counters the achievement progress functions read"""
    reviews: int = 0
    fast_reviews: int = 0
    night_reviews: int = 0
    longest_streak_days: int = 0
    prs_authored: int = 0
    prs_merged: int = 0


Progress = Tuple[int, int]


class Achievement(enum.Enum):
    """Every achievement, with its role, display data and progress function.

    The value is the stable id stored in ``user_achievements``.
    """

    FIRST_REVIEW = (
        "first_review", Role.REVIEWER, "First Blood", "Submit your first review", "🩸", "common",
        lambda c: (c.reviews, 1),
    )
    REVIEW_10 = (
        "review_10", Role.REVIEWER, "Getting Started", "Submit 10 reviews", "📝", "common",
        lambda c: (c.reviews, 10),
    )
    REVIEW_50 = (
        "review_50", Role.REVIEWER, "Reviewer", "Submit 50 reviews", "👁️", "uncommon",
        lambda c: (c.reviews, 50),
    )
    REVIEW_100 = (
        "review_100", Role.REVIEWER, "Centurion", "Submit 100 reviews", "💯", "rare",
        lambda c: (c.reviews, 100),
    )
    SPEED_DEMON = (
        "speed_demon", Role.REVIEWER, "Speed Demon", "Review within 1 hour of a push (10 times)", "⚡", "uncommon",
        lambda c: (c.fast_reviews, 10),
    )
    NIGHT_OWL = (
        "night_owl", Role.REVIEWER, "Night Owl", "Submit 10 reviews after midnight", "🦉", "uncommon",
        lambda c: (c.night_reviews, 10),
    )
    REVIEW_STREAK_7 = (
        "review_streak_7", Role.REVIEWER, "On Fire", "Review PRs 7 days in a row", "🔥", "rare",
        lambda c: (c.longest_streak_days, 7),
    )
    FIRST_PR = (
        "first_pr", Role.AUTHOR, "Hello World", "Open your first pull request", "👋", "common",
        lambda c: (c.prs_authored, 1),
    )
    PR_MERGED_10 = (
        "pr_merged_10", Role.AUTHOR, "Shipper", "Get 10 pull requests merged", "🚢", "uncommon",
        lambda c: (c.prs_merged, 10),
    )

    def __new__(cls, key, role, title, description, emoji, rarity, progress_fn):
        member = object.__new__(cls)
        member._value_ = key
        member.role = role
        member.title = title
        member.description = description
        member.emoji = emoji
        member.rarity = rarity
        member.progress_fn = progress_fn
        return member

    def progress(self, counts: ActivityCounts) -> Progress:
        current, target = self.progress_fn(counts)
        return min(current, target), target

    def is_met(self, counts: ActivityCounts) -> bool:
        current, target = self.progress(counts)
        return current >= target

    @classmethod
    def for_role(cls, role: Role) -> List["Achievement"]:
        return [a for a in cls if a.role == role]


def longest_daily_streak(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive calendar days."""
    ordered = sorted(set(days))
    longest = run = 0
    previous = None
    for day in ordered:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    return longest


class AchievementChecker:
    """Recomputes activity counters and unlocks achievements idempotently."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def reviewer_counts(self, db: AsyncSession, user_id: int) -> ActivityCounts:
        result = await db.execute(select(Review).where(Review.reviewer_id == user_id))
        reviews = result.scalars().all()

        pr_ids = {r.pull_request_id for r in reviews}
        commits_by_pr: Dict[int, List[Commit]] = {}
        if pr_ids:
            result = await db.execute(select(Commit).where(Commit.pull_request_id.in_(pr_ids)))
            for commit in result.scalars().all():
                commits_by_pr.setdefault(commit.pull_request_id, []).append(commit)

        fast = 0
        for review in reviews:
            last_push = latest_commit_before(commits_by_pr.get(review.pull_request_id, []), review.submitted_at)
            if last_push is not None and review.submitted_at - last_push <= DEFAULT_RULES.fast_review_window:
                fast += 1

        return ActivityCounts(
            reviews=len(reviews),
            fast_reviews=fast,
            night_reviews=sum(1 for r in reviews if r.submitted_at.hour < NIGHT_END_HOUR),
            longest_streak_days=longest_daily_streak(r.submitted_at.date() for r in reviews),
        )

    async def author_counts(self, db: AsyncSession, user_id: int) -> ActivityCounts:
        authored = await db.scalar(
            select(func.count(PullRequest.id)).where(PullRequest.author_id == user_id)
        )
        merged = await db.scalar(
            select(func.count(PullRequest.id)).where(
                PullRequest.author_id == user_id,
                PullRequest.state == PrState.MERGED.value,
            )
        )
        return ActivityCounts(prs_authored=authored or 0, prs_merged=merged or 0)

    async def counts(self, db: AsyncSession, user_id: int, role: Role) -> ActivityCounts:
        if role == Role.REVIEWER:
            return await self.reviewer_counts(db, user_id)
        return await self.author_counts(db, user_id)

    async def check(self, user_id: int, role: Role) -> List[Achievement]:
        """Unlock every achievement of ``role`` the user now qualifies for; returns the new ones."""
        async with self.session_factory() as db:
            counts = await self.counts(db, user_id, role)
            unlocked = await self._unlocked_ids(db, user_id)

            newly = []
            for achievement in Achievement.for_role(role):
                if achievement.value in unlocked or not achievement.is_met(counts):
                    continue
                db.add(UserAchievement(user_id=user_id, achievement_id=achievement.value))
                newly.append(achievement)
                logger.info(f"🏆 Achievement unlocked: {achievement.value} for user {user_id}")

            await db.commit()
        return newly

    async def check_reviewer(self, user_id: int) -> List[Achievement]:
        return await self.check(user_id, Role.REVIEWER)

    async def check_author(self, user_id: int) -> List[Achievement]:
        return await self.check(user_id, Role.AUTHOR)

    async def progress(self, user_id: int, role: Role) -> Dict[str, dict]:
        """Per-achievement progress for display."""
        async with self.session_factory() as db:
            counts = await self.counts(db, user_id, role)
            unlocked = await self._unlocked_ids(db, user_id)

        report = {}
        for achievement in Achievement.for_role(role):
            current, target = achievement.progress(counts)
            report[achievement.value] = {
                "current": current,
                "target": target,
                "unlocked": achievement.value in unlocked,
            }
        return report

    @staticmethod
    async def _unlocked_ids(db: AsyncSession, user_id: int) -> set:
        result = await db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())
