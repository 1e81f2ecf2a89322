"""Tests for full XP recalculation."""

import pytest
from sqlalchemy import select

from review_royale.models import Review, ReviewComment, User
from review_royale.processor.backfill import Backfiller
from review_royale.processor.recalculate import recalculate_all_xp
from tests.fakes import CAROL, get_user, make_comment, make_review, seeded_github


async def synced(session_factory):
    gh = seeded_github()
    gh.reviews[1].append(make_review(21, CAROL, "2026-02-12T10:00:00Z", "CHANGES_REQUESTED"))
    gh.comments[1].extend(
        make_comment(200 + n, CAROL, 21, "2026-02-12T09:50:00Z", body=f"Point {n}") for n in range(7)
    )
    await Backfiller(session_factory, gh).backfill_repo("acme", "widgets")
    return gh


@pytest.mark.asyncio
async def test_recalculation_matches_online_awards(session_factory) -> None:
    """Rebuilding from history gives the XP the sync awarded."""
    await synced(session_factory)
    bob_before = await get_user(session_factory, "bob")
    carol_before = await get_user(session_factory, "carol")

    stats = await recalculate_all_xp(session_factory)

    bob = await get_user(session_factory, "bob")
    carol = await get_user(session_factory, "carol")
    assert (bob.xp, bob.review_sessions) == (bob_before.xp, bob_before.review_sessions) == (30, 1)
    # 10 + 7 * 5 + thorough 5
    assert (carol.xp, carol.review_sessions) == (carol_before.xp, carol_before.review_sessions) == (50, 1)
    assert stats.total_reviews == 3
    assert stats.total_sessions == 2
    assert stats.total_xp_awarded == 80
    assert stats.users_updated == 2


@pytest.mark.asyncio
async def test_recalculation_is_idempotent(session_factory) -> None:
    """Running twice on unchanged data yields identical results."""
    await synced(session_factory)

    first = await recalculate_all_xp(session_factory)
    second = await recalculate_all_xp(session_factory)

    assert first == second
    async with session_factory() as db:
        earned = (await db.execute(select(Review.xp_earned).order_by(Review.id))).scalars().all()
    assert earned == [30, 0, 50]


@pytest.mark.asyncio
async def test_recalculation_resets_stale_scores(session_factory) -> None:
    """XP that drifted from history is replaced, not added to."""
    await synced(session_factory)
    async with session_factory() as db:
        bob = (await db.execute(select(User).where(User.login == "bob"))).scalar_one()
        bob.xp = 5000
        bob.level = 8
        bob.review_sessions = 40
        await db.commit()

    await recalculate_all_xp(session_factory, check_achievements=False)

    bob = await get_user(session_factory, "bob")
    assert (bob.xp, bob.level, bob.review_sessions) == (30, 1, 1)


@pytest.mark.asyncio
async def test_recalculation_uses_categorized_quality(session_factory) -> None:
    """Categorized comments switch the reviewer's sessions to quality-weighted XP."""
    await synced(session_factory)
    async with session_factory() as db:
        comments = {
            c.github_id: c
            for c in (await db.execute(select(ReviewComment).where(ReviewComment.github_id.in_([101, 102])))).scalars()
        }
        comments[101].category, comments[101].quality_score = "logic", 8
        comments[102].category, comments[102].quality_score = "nit", 3
        await db.commit()

    await recalculate_all_xp(session_factory)

    bob = await get_user(session_factory, "bob")
    # base 10 + high 8 + low 2 + logic 3 + fast review 10
    assert bob.xp == 33
    carol = await get_user(session_factory, "carol")
    assert carol.xp == 50


@pytest.mark.asyncio
async def test_recalculation_without_reviews(session_factory) -> None:
    """An empty database recalculates to zeros."""
    stats = await recalculate_all_xp(session_factory)
    assert stats.total_reviews == 0
    assert stats.total_xp_awarded == 0
    assert stats.users_updated == 0
