"""Tests for the background sync scheduler."""

import asyncio

import pytest

from review_royale.github_client import RateLimitedError
from review_royale.models import Repository
from review_royale.processor import scheduler as scheduler_module
from review_royale.processor.backfill import SyncProgress
from review_royale.processor.scheduler import SyncScheduler
from tests.fakes import FakeGitHub


class SleepRecorder:
    def __init__(self, cancel_after=None):
        self.calls = []
        self.cancel_after = cancel_after

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if self.cancel_after is not None and len(self.calls) >= self.cancel_after:
            raise asyncio.CancelledError()


class FakeBackfiller:
    synced = []
    rate_limited = set()
    broken = set()

    def __init__(self, session_factory, client, max_age_days=365, rules=None):
        self.max_age_days = max_age_days

    async def backfill_repo(self, owner, name, force=False):
        full_name = f"{owner}/{name}"
        FakeBackfiller.synced.append(full_name)
        if full_name in FakeBackfiller.rate_limited:
            raise RateLimitedError(300)
        if full_name in FakeBackfiller.broken:
            raise RuntimeError("boom")
        return SyncProgress(prs_processed=1, prs_total=1)


@pytest.fixture
def fake_backfiller(monkeypatch):
    FakeBackfiller.synced = []
    FakeBackfiller.rate_limited = set()
    FakeBackfiller.broken = set()
    monkeypatch.setattr(scheduler_module, "Backfiller", FakeBackfiller)
    return FakeBackfiller


async def add_repos(session_factory, *specs):
    async with session_factory() as db:
        for i, (owner, name, tracked) in enumerate(specs, start=1):
            db.add(Repository(github_repo_id=i, owner=owner, name=name, is_tracked=tracked))
        await db.commit()


@pytest.mark.asyncio
async def test_sync_all_visits_tracked_repos_in_order(session_factory, fake_backfiller) -> None:
    """Only tracked repositories are synced, with a delay after each."""
    await add_repos(session_factory, ("acme", "one", True), ("acme", "off", False), ("acme", "two", True))
    sleep = SleepRecorder()

    synced = await SyncScheduler(session_factory, FakeGitHub, repo_delay_seconds=2, sleep=sleep).sync_all()

    assert synced == 2
    assert fake_backfiller.synced == ["acme/one", "acme/two"]
    assert sleep.calls == [2, 2]


@pytest.mark.asyncio
async def test_rate_limited_repo_pauses_then_continues(session_factory, fake_backfiller) -> None:
    """A rate limit sleeps for retry_after and moves on to the next repository."""
    await add_repos(session_factory, ("acme", "one", True), ("acme", "two", True))
    fake_backfiller.rate_limited.add("acme/one")
    sleep = SleepRecorder()

    synced = await SyncScheduler(session_factory, FakeGitHub, sleep=sleep).sync_all()

    assert synced == 1
    assert fake_backfiller.synced == ["acme/one", "acme/two"]
    assert sleep.calls == [300, 2, 2]


@pytest.mark.asyncio
async def test_failed_repo_does_not_stop_the_pass(session_factory, fake_backfiller) -> None:
    await add_repos(session_factory, ("acme", "one", True), ("acme", "two", True))
    fake_backfiller.broken.add("acme/one")

    synced = await SyncScheduler(session_factory, FakeGitHub, sleep=SleepRecorder()).sync_once()

    assert synced == 1
    assert fake_backfiller.synced == ["acme/one", "acme/two"]


@pytest.mark.asyncio
async def test_no_tracked_repos(session_factory, fake_backfiller) -> None:
    assert await SyncScheduler(session_factory, FakeGitHub, sleep=SleepRecorder()).sync_all() == 0
    assert fake_backfiller.synced == []


@pytest.mark.asyncio
async def test_run_skips_the_first_tick(session_factory, fake_backfiller) -> None:
    """The loop waits a full interval before the first pass."""
    await add_repos(session_factory, ("acme", "one", True))
    sleep = SleepRecorder(cancel_after=1)

    with pytest.raises(asyncio.CancelledError):
        await SyncScheduler(session_factory, FakeGitHub, interval_seconds=60, sleep=sleep).run()

    assert sleep.calls == [60]
    assert fake_backfiller.synced == []


@pytest.mark.asyncio
async def test_run_syncs_every_interval(session_factory, fake_backfiller) -> None:
    await add_repos(session_factory, ("acme", "one", True))
    # interval, repo delay, interval, repo delay, interval (cancelled)
    sleep = SleepRecorder(cancel_after=5)

    with pytest.raises(asyncio.CancelledError):
        await SyncScheduler(
            session_factory, FakeGitHub, interval_seconds=60, repo_delay_seconds=1, sleep=sleep
        ).run()

    assert sleep.calls == [60, 1, 60, 1, 60]
    assert fake_backfiller.synced == ["acme/one", "acme/one"]
