"""Repository model for tracked GitHub repositories"""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from review_royale.core.database import Base
from review_royale.core.time_utils import utcnow


class Repository(Base):
    """A GitHub repository whose review activity is synced"""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)

    # GitHub repository info
    github_repo_id = Column(BigInteger, unique=True, nullable=False, index=True)
    owner = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    is_tracked = Column(Boolean, default=True, nullable=False)

    # Sync cursor: completion time of the last sync, None until the first one
    last_synced_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)

    pull_requests = relationship("PullRequest", back_populates="repository", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __repr__(self):
        return f"<Repository(id={self.id}, full_name={self.full_name}, last_synced_at={self.last_synced_at})>"
