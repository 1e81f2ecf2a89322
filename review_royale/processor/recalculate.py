"""Full XP recalculation from persisted review history"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from review_royale.models import Commit, Review, ReviewComment, User
from review_royale.processor.achievements import AchievementChecker
from review_royale.processor.awards import score_group
from review_royale.processor.categorize import aggregate_quality, group_comments
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules

logger = logging.getLogger(__name__)


@dataclass
class RecalculationStats:
    total_reviews: int = 0
    total_sessions: int = 0
    total_xp_awarded: int = 0
    users_updated: int = 0


async def recalculate_all_xp(
    session_factory: async_sessionmaker,
    rules: ScoringRules = DEFAULT_RULES,
    check_achievements: bool = True,
) -> RecalculationStats:
    """
    Recompute every user's XP, level and session count from scratch.

    Every review is regrouped into sessions and rescored with the current
    rules. All writes happen in a single transaction, so a failure leaves
    the previous scores untouched. Running it twice on unchanged data gives
    the same result.
    """
    logger.info(f"Starting XP recalculation for all users (rules {rules.version})")
    stats = RecalculationStats()

    async with session_factory() as db:
        users = {u.id: u for u in (await db.execute(select(User))).scalars().all()}
        reviews = (await db.execute(select(Review).order_by(Review.submitted_at, Review.id))).scalars().all()
        commits = (await db.execute(select(Commit))).scalars().all()
        comments = (
            await db.execute(select(ReviewComment).where(ReviewComment.category.is_not(None)))
        ).scalars().all()
        logger.info(f"Fetched {len(reviews)} reviews, {len(commits)} commits, {len(comments)} categorized comments")

        logger.info("Resetting all user XP and review xp_earned to 0")
        for user in users.values():
            user.xp = 0
            user.level = 1
            user.review_sessions = 0
        for review in reviews:
            review.xp_earned = 0

        commits_by_pr: Dict[int, List[Commit]] = defaultdict(list)
        for commit in commits:
            commits_by_pr[commit.pull_request_id].append(commit)

        groups: Dict[Tuple[int, int], List[Review]] = defaultdict(list)
        for review in reviews:
            groups[(review.pull_request_id, review.reviewer_id)].append(review)
        logger.info(f"Grouped reviews into {len(groups)} unique (pr, reviewer) pairs")

        quality_by_group = group_comments(comments)
        updated = set()

        for (pr_id, reviewer_id), group in sorted(groups.items()):
            quality = aggregate_quality(quality_by_group.get((pr_id, reviewer_id), []), rules)
            scored = score_group(group, commits_by_pr[pr_id], quality, rules)

            user = users[reviewer_id]
            user.review_sessions += len(scored)
            stats.total_sessions += len(scored)

            for item in scored:
                if item.xp <= 0:
                    continue
                user.add_xp(item.xp)
                # Period-filtered leaderboards sum xp_earned by submission time
                item.session.first_review.xp_earned = item.xp
                stats.total_xp_awarded += item.xp
                updated.add(reviewer_id)

        await db.commit()

    stats.total_reviews = len(reviews)
    stats.users_updated = len(updated)
    logger.info(
        f"Recalculation complete: {stats.total_sessions} sessions, "
        f"{stats.total_xp_awarded} XP awarded, {stats.users_updated} users updated"
    )

    if check_achievements:
        checker = AchievementChecker(session_factory)
        for user_id in sorted(updated):
            await checker.check_reviewer(user_id)

    return stats
