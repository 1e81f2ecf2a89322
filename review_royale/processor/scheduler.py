"""Background sync of every tracked repository on a fixed interval"""

import asyncio
import logging
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from review_royale.github_client import GitHubClient, RateLimitedError
from review_royale.models import Repository
from review_royale.processor.backfill import Backfiller
from review_royale.processor.rules import DEFAULT_RULES, ScoringRules

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SyncScheduler:
    """
    Periodically syncs all tracked repositories, one at a time.

    The first tick is skipped so a freshly started process does not sync
    right away. A rate-limited repository pauses the pass for the requested
    time and the pass then moves on to the next repository.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client_factory: Callable[[], GitHubClient] = GitHubClient,
        interval_seconds: float = 6 * 60 * 60,
        max_age_days: int = 365,
        repo_delay_seconds: float = 2,
        rules: ScoringRules = DEFAULT_RULES,
        sleep: Sleep = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.interval_seconds = interval_seconds
        self.max_age_days = max_age_days
        self.repo_delay_seconds = repo_delay_seconds
        self.rules = rules
        self._sleep = sleep

    async def run(self) -> None:
        """Sync loop; runs until cancelled."""
        logger.info(f"Starting sync service (interval: {self.interval_seconds}s)")
        while True:
            await self._sleep(self.interval_seconds)
            logger.info("Starting scheduled sync of all tracked repos")
            try:
                await self.sync_all()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sync failed")

    async def sync_once(self) -> int:
        """Run a single pass (manual trigger)."""
        return await self.sync_all()

    async def sync_all(self) -> int:
        """Sync every tracked repository; returns how many synced successfully."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Repository.owner, Repository.name)
                .where(Repository.is_tracked.is_(True))
                .order_by(Repository.id)
            )
            repos = result.all()

        if not repos:
            logger.info("No tracked repos to sync")
            return 0

        logger.info(f"Syncing {len(repos)} tracked repos")
        synced = 0

        async with self.client_factory() as client:
            backfiller = Backfiller(self.session_factory, client, self.max_age_days, self.rules)
            for owner, name in repos:
                logger.info(f"Syncing {owner}/{name}")
                try:
                    progress = await backfiller.backfill_repo(owner, name)
                except RateLimitedError as e:
                    logger.warning(
                        f"Rate limited while syncing {owner}/{name}. Pausing for {e.retry_after} seconds"
                    )
                    await self._sleep(e.retry_after)
                except Exception as e:
                    logger.error(f"Failed to sync {owner}/{name}: {e}")
                else:
                    synced += 1
                    logger.info(
                        f"Synced {owner}/{name}: {progress.prs_processed} PRs, "
                        f"{progress.reviews_processed} reviews"
                    )

                # Small delay between repos to be nice to GitHub
                await self._sleep(self.repo_delay_seconds)

        logger.info("Sync complete")
        return synced
