"""Schemas for the GitHub REST payloads the sync reads"""

from datetime import datetime

from pydantic import BaseModel, field_validator

from review_royale.core.time_utils import to_naive_utc


class GitHubPayload(BaseModel):
    """Base payload: unknown fields ignored, timestamps normalized to naive UTC"""

    model_config = {"extra": "ignore"}

    @field_validator("*", mode="after")
    @classmethod
    def _naive_utc(cls, value):
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value


class GitHubUser(GitHubPayload):
    id: int
    login: str
    avatar_url: str | None = None


class GitHubRepo(GitHubPayload):
    id: int
    name: str
    full_name: str
    owner: GitHubUser


class GitHubPullRequest(GitHubPayload):
    id: int
    number: int
    title: str = ""
    state: str
    user: GitHubUser
    created_at: datetime
    updated_at: datetime
    merged_at: datetime | None = None
    closed_at: datetime | None = None


class GitHubReview(GitHubPayload):
    id: int
    user: GitHubUser | None = None  # None for deleted (ghost) accounts
    state: str
    body: str | None = None
    submitted_at: datetime | None = None  # None while pending


class GitHubReviewComment(GitHubPayload):
    id: int
    user: GitHubUser | None = None
    body: str = ""
    path: str | None = None
    line: int | None = None
    created_at: datetime
    pull_request_review_id: int | None = None


class GitHubCommitAuthor(GitHubPayload):
    date: datetime


class GitHubCommitDetail(GitHubPayload):
    author: GitHubCommitAuthor
    message: str = ""


class GitHubCommit(GitHubPayload):
    sha: str
    commit: GitHubCommitDetail
