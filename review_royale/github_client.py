"""GitHub REST client for repositories, pull requests, reviews and commits"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from .config import get_settings
from .core.time_utils import utcnow
from .schemas.github import (
    GitHubCommit,
    GitHubPullRequest,
    GitHubRepo,
    GitHubReview,
    GitHubReviewComment,
)

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PR_PAGES = 50
DEFAULT_RETRY_AFTER = 60

T = TypeVar("T", bound=BaseModel)


class GitHubError(Exception):
    """Base error for GitHub API failures"""


class RateLimitedError(GitHubError):
    """GitHub asked us to back off; retry_after is in seconds"""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after} seconds")


class NotFoundError(GitHubError):
    pass


class GitHubAPIError(GitHubError):
    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"GitHub API error: {status} - {message}")


def _retry_after(response: httpx.Response) -> int:
    header = response.headers.get("retry-after")
    if header and header.isdigit():
        return int(header)
    reset = response.headers.get("x-ratelimit-reset")
    if reset and reset.isdigit():
        return max(int(reset) - int(time.time()), 1)
    return DEFAULT_RETRY_AFTER


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code == 403:
        return (
            "retry-after" in response.headers
            or response.headers.get("x-ratelimit-remaining") == "0"
        )
    return False


class GitHubClient:
    """
    Thin async wrapper over the GitHub REST API.

    Every call raises RateLimitedError when GitHub signals rate limiting,
    NotFoundError on 404 and GitHubAPIError on any other non-2xx status.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.token = token if token is not None else settings.github_token
        self.base_url = (base_url or settings.github_api_base).rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=30)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "Review-Royale/1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url} {params or ''}")
        try:
            response = await self._client.get(url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise GitHubError(f"HTTP error: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(url)
        if _is_rate_limited(response):
            raise RateLimitedError(_retry_after(response))
        if response.is_error:
            raise GitHubAPIError(response.status_code, response.text)
        return response.json()

    async def _get_paginated(self, path: str, model: Type[T], max_pages: int = MAX_PR_PAGES) -> List[T]:
        """Fetch every page of a list endpoint until a short page comes back."""
        items: List[T] = []
        for page in range(1, max_pages + 1):
            data = await self._request(path, params={"per_page": PER_PAGE, "page": page})
            items.extend(model.model_validate(item) for item in data)
            if len(data) < PER_PAGE:
                break
        return items

    async def get_repo(self, owner: str, name: str) -> GitHubRepo:
        """Fetch repository info"""
        data = await self._request(f"/repos/{owner}/{name}")
        return GitHubRepo.model_validate(data)

    async def list_prs(
        self,
        owner: str,
        repo: str,
        state: str = "all",
        page: int = 1,
        per_page: int = PER_PAGE,
    ) -> List[GitHubPullRequest]:
        """List one page of PRs, most recently updated first"""
        data = await self._request(
            f"/repos/{owner}/{repo}/pulls",
            params={
                "state": state,
                "sort": "updated",
                "direction": "desc",
                "page": page,
                "per_page": per_page,
            },
        )
        return [GitHubPullRequest.model_validate(item) for item in data]

    async def fetch_prs_since(
        self,
        owner: str,
        repo: str,
        since: Optional[datetime],
        max_age_days: int,
    ) -> List[GitHubPullRequest]:
        """
        Fetch all PRs updated at or after the cutoff, newest first.

        The cutoff is ``since`` when given, otherwise ``max_age_days`` ago.
        Pagination stops at the first page that reaches past the cutoff,
        at an empty or short page, or after MAX_PR_PAGES pages.
        """
        cutoff = since or (utcnow() - timedelta(days=max_age_days))
        prs: List[GitHubPullRequest] = []

        for page in range(1, MAX_PR_PAGES + 1):
            logger.info(f"Fetching PRs page {page} for {owner}/{repo}")
            batch = await self.list_prs(owner, repo, "all", page, PER_PAGE)
            if not batch:
                break

            recent = [pr for pr in batch if pr.updated_at >= cutoff]
            prs.extend(recent)

            if len(recent) < len(batch):
                logger.debug("Reached PRs older than cutoff, stopping pagination")
                break
            if len(batch) < PER_PAGE:
                break
        else:
            logger.warning(f"Hit pagination limit of {MAX_PR_PAGES} pages for {owner}/{repo}")

        logger.info(f"Fetched {len(prs)} PRs total for {owner}/{repo}")
        return prs

    async def list_reviews(self, owner: str, repo: str, pr_number: int) -> List[GitHubReview]:
        """Fetch all reviews for a PR"""
        return await self._get_paginated(f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews", GitHubReview)

    async def list_review_comments(self, owner: str, repo: str, pr_number: int) -> List[GitHubReviewComment]:
        """Fetch inline review comments for a PR"""
        return await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/comments", GitHubReviewComment
        )

    async def list_commits(self, owner: str, repo: str, pr_number: int) -> List[GitHubCommit]:
        """Fetch commits for a PR"""
        return await self._get_paginated(f"/repos/{owner}/{repo}/pulls/{pr_number}/commits", GitHubCommit)
