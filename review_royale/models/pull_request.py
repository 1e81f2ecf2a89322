"""PullRequest and Commit models"""

import enum

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from review_royale.core.database import Base


class PrState(str, enum.Enum):
    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"


class PullRequest(Base):
    """A pull request on a tracked repository"""

    __tablename__ = "pull_requests"

    id = Column(Integer, primary_key=True, index=True)
    repository_id = Column(Integer, ForeignKey("repositories.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    github_id = Column(BigInteger, unique=True, nullable=False, index=True)
    number = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False, default="")
    state = Column(String(20), nullable=False, default=PrState.OPEN.value)

    # Timestamps
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)
    first_review_at = Column(DateTime)  # set once, never overwritten
    merged_at = Column(DateTime)
    closed_at = Column(DateTime)

    # Relationships
    repository = relationship("Repository", back_populates="pull_requests")
    author = relationship("User", back_populates="authored_prs")
    reviews = relationship("Review", back_populates="pull_request", cascade="all, delete-orphan")
    commits = relationship("Commit", back_populates="pull_request", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PullRequest(id={self.id}, number={self.number}, state={self.state})>"


class Commit(Base):
    """A commit pushed to a pull request, used as session-boundary evidence"""

    __tablename__ = "commits"
    __table_args__ = (UniqueConstraint("pull_request_id", "sha", name="uq_commits_pr_sha"),)

    id = Column(Integer, primary_key=True, index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id"), nullable=False, index=True)
    sha = Column(String(40), nullable=False)
    committed_at = Column(DateTime, nullable=False, index=True)
    message = Column(Text)

    pull_request = relationship("PullRequest", back_populates="commits")

    def __repr__(self):
        return f"<Commit(sha={self.sha[:7]}, committed_at={self.committed_at})>"
