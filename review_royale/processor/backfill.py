"""Backfill and incremental sync of repository activity from GitHub"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from review_royale.core.time_utils import utcnow
from review_royale.github_client import GitHubClient, GitHubError, RateLimitedError
from review_royale.models import Commit, PrState, PullRequest, Repository, Review, ReviewComment, ReviewState, User
from review_royale.processor.achievements import AchievementChecker
from review_royale.processor.awards import apply_online_awards, score_group
from review_royale.processor.categorize import quality_for
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules
from review_royale.processor.sessions import build_sessions
from review_royale.schemas.github import (
    GitHubCommit,
    GitHubPullRequest,
    GitHubReview,
    GitHubReviewComment,
    GitHubUser,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncProgress:
    """Counters for one backfill run"""
    prs_processed: int = 0
    prs_total: int = 0
    reviews_processed: int = 0
    users_created: int = 0
    current_pr: Optional[int] = None


@dataclass
class PrResult:
    reviews: int = 0
    users_created: int = 0


def pr_state(pr: GitHubPullRequest) -> PrState:
    if pr.merged_at is not None:
        return PrState.MERGED
    if pr.state == "closed":
        return PrState.CLOSED
    return PrState.OPEN


async def upsert_user(db: AsyncSession, gh_user: GitHubUser) -> Tuple[User, bool]:
    """Find or create a user by GitHub id; returns (user, created)."""
    result = await db.execute(select(User).where(User.github_id == gh_user.id))
    user = result.scalar_one_or_none()
    if user:
        user.login = gh_user.login
        user.avatar_url = gh_user.avatar_url
        return user, False

    user = User(github_id=gh_user.id, login=gh_user.login, avatar_url=gh_user.avatar_url, xp=0, level=1, review_sessions=0)
    db.add(user)
    await db.flush()
    return user, True


async def upsert_repository(db: AsyncSession, github_repo_id: int, owner: str, name: str) -> Repository:
    result = await db.execute(select(Repository).where(Repository.github_repo_id == github_repo_id))
    repo = result.scalar_one_or_none()
    if repo:
        repo.owner = owner
        repo.name = name
    else:
        repo = Repository(github_repo_id=github_repo_id, owner=owner, name=name, is_tracked=True)
        db.add(repo)
    await db.flush()
    return repo


class Backfiller:
    """
    Pulls pull requests, reviews, review comments and commits for a repository
    and awards session XP as it goes.

    PRs are processed one at a time, each in its own transaction. The
    repository's ``last_synced_at`` cursor is set to the time the run started,
    also when the run stops early on a rate limit while processing PRs. A
    rate limit while listing PRs leaves the cursor unchanged.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client: GitHubClient,
        max_age_days: int = 365,
        rules: ScoringRules = DEFAULT_RULES,
    ):
        self.session_factory = session_factory
        self.client = client
        self.max_age_days = max_age_days
        self.rules = rules
        self.achievements = AchievementChecker(session_factory)

    async def backfill_repo(self, owner: str, name: str, force: bool = False) -> SyncProgress:
        """
        Sync a repository.

        Fetches PRs updated since the last sync (or within ``max_age_days`` on
        the first run, or when ``force`` is set).

        Raises:
            RateLimitedError: GitHub asked us to back off; the cursor has been saved
        """
        logger.info(f"Starting backfill for {owner}/{name} (force: {force})")

        gh_repo = await self.client.get_repo(owner, name)
        async with self.session_factory() as db:
            repo = await upsert_repository(db, gh_repo.id, owner, name)
            repo_id = repo.id
            last_synced = None if force else repo.last_synced_at
            await db.commit()

        if force:
            logger.info("Force mode: ignoring last_synced_at")
        sync_start = utcnow()

        logger.info(f"Last sync: {last_synced}, fetching PRs updated since then (max {self.max_age_days} days)")
        try:
            prs = await self.client.fetch_prs_since(owner, name, last_synced, self.max_age_days)
        except RateLimitedError as e:
            # Nothing was processed; keep the old cursor so no PR is skipped
            logger.warning(f"Rate limited while listing PRs. Retry after {e.retry_after} seconds")
            raise

        progress = SyncProgress(prs_total=len(prs))
        logger.info(f"Processing {len(prs)} PRs")

        for pr in prs:
            progress.current_pr = pr.number
            try:
                result = await self._process_pr(repo_id, owner, name, pr)
            except RateLimitedError as e:
                logger.warning(f"Rate limited, stopping backfill. Retry after {e.retry_after} seconds")
                await self._save_cursor(repo_id, sync_start)
                raise
            except Exception as e:
                logger.warning(f"Error processing PR #{pr.number}: {e}")
            else:
                progress.reviews_processed += result.reviews
                progress.users_created += result.users_created
            progress.prs_processed += 1

            if progress.prs_processed % 10 == 0:
                logger.info(
                    f"Progress: {progress.prs_processed}/{progress.prs_total} PRs, "
                    f"{progress.reviews_processed} reviews"
                )

        await self._save_cursor(repo_id, sync_start)
        logger.info(
            f"Backfill complete: {progress.prs_processed} PRs, "
            f"{progress.reviews_processed} reviews, {progress.users_created} new users"
        )
        return progress

    async def _save_cursor(self, repo_id: int, sync_start) -> None:
        async with self.session_factory() as db:
            repo = await db.get(Repository, repo_id)
            repo.last_synced_at = sync_start
            await db.commit()

    async def _fetch_pr_activity(
        self, owner: str, name: str, number: int
    ) -> Optional[Tuple[List[GitHubReview], List[GitHubReviewComment], List[GitHubCommit]]]:
        """Reviews, review comments and commits of a PR; None when reviews can't be fetched."""
        try:
            reviews = await self.client.list_reviews(owner, name, number)
        except RateLimitedError:
            raise
        except GitHubError as e:
            logger.warning(f"Failed to fetch reviews for PR #{number}: {e}")
            return None

        try:
            comments = await self.client.list_review_comments(owner, name, number)
        except RateLimitedError:
            raise
        except GitHubError as e:
            logger.debug(f"Failed to fetch comments for PR #{number}: {e}")
            comments = []

        try:
            commits = await self.client.list_commits(owner, name, number)
        except RateLimitedError:
            raise
        except GitHubError as e:
            logger.warning(f"Failed to fetch commits for PR #{number}: {e}")
            commits = []

        return reviews, comments, commits

    async def _process_pr(self, repo_id: int, owner: str, name: str, pr: GitHubPullRequest) -> PrResult:
        logger.debug(f"Processing PR #{pr.number}: {pr.title}")
        result = PrResult()

        async with self.session_factory() as db:
            author, created = await upsert_user(db, pr.user)
            result.users_created += created

            db_pr = await self._upsert_pr(db, repo_id, author.id, pr)

            activity = await self._fetch_pr_activity(owner, name, pr.number)
            if activity is None:
                await db.commit()
                return result
            gh_reviews, gh_comments, gh_commits = activity

            await self._upsert_commits(db, db_pr.id, gh_commits)

            comment_counts = Counter(
                c.pull_request_review_id for c in gh_comments if c.pull_request_review_id is not None
            )
            reviewers, pre_existing, new_count, users_created = await self._upsert_reviews(
                db, db_pr, gh_reviews, comment_counts
            )
            result.reviews += new_count
            result.users_created += users_created

            result.users_created += await self._upsert_comments(db, db_pr.id, gh_comments)

            await db.flush()
            for user_id in sorted(reviewers):
                await self._award_reviewer(db, db_pr.id, user_id, pre_existing)

            author_id = author.id
            await db.commit()

        for user_id in sorted(reviewers):
            await self.achievements.check_reviewer(user_id)
        await self.achievements.check_author(author_id)

        return result

    async def _upsert_pr(self, db: AsyncSession, repo_id: int, author_id: int, pr: GitHubPullRequest) -> PullRequest:
        result = await db.execute(select(PullRequest).where(PullRequest.github_id == pr.id))
        db_pr = result.scalar_one_or_none()
        if db_pr is None:
            db_pr = PullRequest(
                repository_id=repo_id,
                github_id=pr.id,
                number=pr.number,
                author_id=author_id,
                created_at=pr.created_at,
            )
            db.add(db_pr)

        db_pr.title = pr.title
        db_pr.state = pr_state(pr).value
        db_pr.updated_at = pr.updated_at
        if pr.merged_at is not None:
            db_pr.merged_at = pr.merged_at
        if pr.closed_at is not None:
            db_pr.closed_at = pr.closed_at

        await db.flush()
        return db_pr

    async def _upsert_commits(self, db: AsyncSession, pr_id: int, gh_commits: List[GitHubCommit]) -> None:
        result = await db.execute(select(Commit).where(Commit.pull_request_id == pr_id))
        existing = {c.sha: c for c in result.scalars().all()}
        for gh_commit in gh_commits:
            commit = existing.get(gh_commit.sha)
            if commit is None:
                commit = Commit(pull_request_id=pr_id, sha=gh_commit.sha)
                db.add(commit)
                existing[gh_commit.sha] = commit
            commit.committed_at = gh_commit.commit.author.date
            commit.message = gh_commit.commit.message

    async def _upsert_reviews(
        self,
        db: AsyncSession,
        db_pr: PullRequest,
        gh_reviews: List[GitHubReview],
        comment_counts: Counter,
    ) -> Tuple[Set[int], Set[int], int, int]:
        """
        Upsert submitted reviews.

        Returns (reviewer ids, ids of reviews that existed before this run,
        number of newly inserted reviews, number of users created).
        """
        result = await db.execute(select(Review).where(Review.pull_request_id == db_pr.id))
        existing = {r.github_id: r for r in result.scalars().all()}
        pre_existing = {r.id for r in existing.values()}

        reviewers: Set[int] = set()
        inserted = 0
        users_created = 0
        first_review_at = None

        for gh_review in gh_reviews:
            # Ghost accounts and pending reviews carry nothing to score
            if gh_review.user is None or gh_review.submitted_at is None:
                continue

            reviewer, created = await upsert_user(db, gh_review.user)
            users_created += created
            reviewers.add(reviewer.id)

            review = existing.get(gh_review.id)
            if review is None:
                review = Review(
                    pull_request_id=db_pr.id,
                    reviewer_id=reviewer.id,
                    github_id=gh_review.id,
                    xp_earned=0,
                )
                db.add(review)
                existing[gh_review.id] = review
                inserted += 1

            review.state = ReviewState.from_github(gh_review.state).value
            review.body = gh_review.body
            review.comments_count = comment_counts.get(gh_review.id, 0)
            review.submitted_at = gh_review.submitted_at

            if first_review_at is None or gh_review.submitted_at < first_review_at:
                first_review_at = gh_review.submitted_at

        if first_review_at is not None and db_pr.first_review_at is None:
            db_pr.first_review_at = first_review_at

        await db.flush()
        return reviewers, pre_existing, inserted, users_created

    async def _upsert_comments(self, db: AsyncSession, pr_id: int, gh_comments: List[GitHubReviewComment]) -> int:
        """Upsert review comments, keeping any categorization already stored. Returns users created."""
        result = await db.execute(select(ReviewComment).where(ReviewComment.pull_request_id == pr_id))
        existing = {c.github_id: c for c in result.scalars().all()}

        review_ids: Dict[int, int] = {}
        review_github_ids = {c.pull_request_review_id for c in gh_comments if c.pull_request_review_id}
        if review_github_ids:
            result = await db.execute(
                select(Review.github_id, Review.id).where(Review.github_id.in_(review_github_ids))
            )
            review_ids = dict(result.all())

        users_created = 0
        for gh_comment in gh_comments:
            if gh_comment.user is None:
                continue
            user, created = await upsert_user(db, gh_comment.user)
            users_created += created

            comment = existing.get(gh_comment.id)
            if comment is None:
                comment = ReviewComment(pull_request_id=pr_id, github_id=gh_comment.id)
                db.add(comment)
                existing[gh_comment.id] = comment
            elif comment.body != gh_comment.body:
                # Edited text invalidates the old classification
                comment.category = None
                comment.quality_score = None

            comment.user_id = user.id
            comment.review_id = review_ids.get(gh_comment.pull_request_review_id)
            comment.body = gh_comment.body
            comment.path = gh_comment.path
            comment.line = gh_comment.line
            comment.created_at = gh_comment.created_at

        return users_created

    async def _award_reviewer(self, db: AsyncSession, pr_id: int, user_id: int, pre_existing: Set[int]) -> None:
        """Regroup the reviewer's sessions on this PR and top up XP and session count."""
        result = await db.execute(
            select(Review).where(Review.pull_request_id == pr_id, Review.reviewer_id == user_id)
        )
        reviews = result.scalars().all()
        result = await db.execute(select(Commit).where(Commit.pull_request_id == pr_id))
        commits = result.scalars().all()

        quality = await quality_for(db, pr_id, user_id, self.rules)
        scored = score_group(reviews, commits, quality, self.rules)

        user = await db.get(User, user_id)
        added = apply_online_awards(user, scored)

        sessions_before = len(build_sessions([r for r in reviews if r.id in pre_existing], commits, self.rules))
        user.review_sessions = (user.review_sessions or 0) + max(len(scored) - sessions_before, 0)

        if added:
            logger.debug(f"Awarded {added} XP to user {user_id} on PR {pr_id}")
