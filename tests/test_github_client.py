"""Contract tests for the GitHub REST client."""

from __future__ import annotations

from datetime import datetime

import httpx
import pytest
import respx

from review_royale.github_client import (
    DEFAULT_RETRY_AFTER,
    MAX_PR_PAGES,
    PER_PAGE,
    GitHubAPIError,
    GitHubClient,
    GitHubError,
    NotFoundError,
    RateLimitedError,
)

BASE = "http://github.test"
PULLS = f"{BASE}/repos/acme/widgets/pulls"


def pr_json(number: int, updated_at: str) -> dict:
    return {
        "id": 5000 + number,
        "number": number,
        "title": f"PR {number}",
        "state": "open",
        "user": {"id": 1, "login": "alice"},
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": updated_at,
        "merged_at": None,
        "closed_at": None,
    }


def client() -> GitHubClient:
    return GitHubClient(token="secret", base_url=BASE)


@pytest.mark.asyncio
async def test_get_repo_sends_auth_header() -> None:
    """Repository lookup is authenticated and parsed."""
    with respx.mock(assert_all_called=True) as router:
        route = router.get(f"{BASE}/repos/acme/widgets").respond(
            200,
            json={"id": 42, "name": "widgets", "full_name": "acme/widgets", "owner": {"id": 9, "login": "acme"}},
        )
        async with client() as gh:
            repo = await gh.get_repo("acme", "widgets")

    assert repo.id == 42
    assert repo.owner.login == "acme"
    assert route.calls[0].request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_timestamps_are_normalized_to_naive_utc() -> None:
    """Offsets in GitHub timestamps are converted to naive UTC."""
    with respx.mock(assert_all_called=True) as router:
        router.get(PULLS).respond(200, json=[pr_json(1, "2026-02-10T14:00:00+02:00")])
        async with client() as gh:
            prs = await gh.list_prs("acme", "widgets")

    assert prs[0].updated_at == datetime(2026, 2, 10, 12, 0, 0)
    assert prs[0].updated_at.tzinfo is None


@pytest.mark.asyncio
async def test_fetch_prs_since_stops_at_first_page_past_cutoff() -> None:
    """Pagination stops on the first page containing a PR older than the cutoff."""
    pages = {
        "1": [pr_json(n, "2026-02-20T00:00:00Z") for n in range(PER_PAGE)],
        "2": [pr_json(PER_PAGE + n, "2026-02-15T00:00:00Z") for n in range(PER_PAGE - 1)]
        + [pr_json(999, "2026-01-01T00:00:00Z")],
        "3": [pr_json(1000, "2026-01-01T00:00:00Z")],
    }

    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.params["page"]])

    with respx.mock() as router:
        route = router.get(PULLS).mock(side_effect=respond)
        async with client() as gh:
            prs = await gh.fetch_prs_since("acme", "widgets", datetime(2026, 2, 1), 365)

    assert route.call_count == 2
    assert len(prs) == 2 * PER_PAGE - 1
    assert all(pr.updated_at >= datetime(2026, 2, 1) for pr in prs)
    params = route.calls[0].request.url.params
    assert params["sort"] == "updated"
    assert params["direction"] == "desc"
    assert params["state"] == "all"


@pytest.mark.asyncio
async def test_fetch_prs_since_stops_on_short_page() -> None:
    """A page shorter than PER_PAGE is the last one."""
    with respx.mock() as router:
        route = router.get(PULLS).respond(200, json=[pr_json(1, "2026-02-20T00:00:00Z")])
        async with client() as gh:
            prs = await gh.fetch_prs_since("acme", "widgets", datetime(2026, 2, 1), 365)

    assert route.call_count == 1
    assert [pr.number for pr in prs] == [1]


@pytest.mark.asyncio
async def test_fetch_prs_since_never_exceeds_page_cap() -> None:
    """An endless stream of recent PRs is cut off after MAX_PR_PAGES pages."""

    def respond(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        return httpx.Response(
            200, json=[pr_json(page * PER_PAGE + n, "2026-02-20T00:00:00Z") for n in range(PER_PAGE)]
        )

    with respx.mock() as router:
        route = router.get(PULLS).mock(side_effect=respond)
        async with client() as gh:
            prs = await gh.fetch_prs_since("acme", "widgets", datetime(2026, 2, 1), 365)

    assert route.call_count == MAX_PR_PAGES
    assert len(prs) == MAX_PR_PAGES * PER_PAGE


@pytest.mark.asyncio
async def test_paginated_lists_follow_pages() -> None:
    """Reviews are fetched page by page until a short page."""
    first = [
        {"id": n, "user": {"id": 2, "login": "bob"}, "state": "COMMENTED", "submitted_at": "2026-02-20T10:00:00Z"}
        for n in range(PER_PAGE)
    ]
    second = [{"id": 500, "user": None, "state": "APPROVED", "submitted_at": "2026-02-20T11:00:00Z"}]

    def respond(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=first if request.url.params["page"] == "1" else second)

    with respx.mock() as router:
        route = router.get(f"{PULLS}/7/reviews").mock(side_effect=respond)
        async with client() as gh:
            reviews = await gh.list_reviews("acme", "widgets", 7)

    assert route.call_count == 2
    assert len(reviews) == PER_PAGE + 1
    assert reviews[-1].user is None


@pytest.mark.asyncio
async def test_429_raises_rate_limited_with_retry_after() -> None:
    """429 carries the Retry-After delay."""
    with respx.mock() as router:
        router.get(f"{PULLS}/7/commits").respond(429, headers={"Retry-After": "120"})
        async with client() as gh:
            with pytest.raises(RateLimitedError) as exc_info:
                await gh.list_commits("acme", "widgets", 7)

    assert exc_info.value.retry_after == 120


@pytest.mark.asyncio
async def test_403_with_exhausted_quota_is_rate_limited() -> None:
    """403 with no remaining quota is a rate limit; the delay defaults when unknown."""
    with respx.mock() as router:
        router.get(f"{PULLS}/7/comments").respond(403, headers={"X-RateLimit-Remaining": "0"})
        async with client() as gh:
            with pytest.raises(RateLimitedError) as exc_info:
                await gh.list_review_comments("acme", "widgets", 7)

    assert exc_info.value.retry_after == DEFAULT_RETRY_AFTER


@pytest.mark.asyncio
async def test_plain_403_is_an_api_error() -> None:
    """403 without rate-limit headers is a permission failure."""
    with respx.mock() as router:
        router.get(f"{BASE}/repos/acme/widgets").respond(403, text="forbidden")
        async with client() as gh:
            with pytest.raises(GitHubAPIError) as exc_info:
                await gh.get_repo("acme", "widgets")

    assert exc_info.value.status == 403
    assert not isinstance(exc_info.value, RateLimitedError)


@pytest.mark.asyncio
async def test_404_raises_not_found() -> None:
    """Missing repositories raise NotFoundError."""
    with respx.mock() as router:
        router.get(f"{BASE}/repos/acme/missing").respond(404, json={"message": "Not Found"})
        async with client() as gh:
            with pytest.raises(NotFoundError):
                await gh.get_repo("acme", "missing")


@pytest.mark.asyncio
async def test_transport_errors_are_wrapped() -> None:
    """Connection failures surface as GitHubError."""
    with respx.mock() as router:
        router.get(f"{BASE}/repos/acme/widgets").mock(side_effect=httpx.ConnectError("refused"))
        async with client() as gh:
            with pytest.raises(GitHubError):
                await gh.get_repo("acme", "widgets")
