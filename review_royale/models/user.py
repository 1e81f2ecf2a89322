"""User model for GitHub accounts that author or review pull requests"""

import math

from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from review_royale.core.database import Base
from review_royale.core.time_utils import utcnow


def level_for_xp(xp: int) -> int:
    """Level is floor(sqrt(xp / 100)) + 1."""
    return math.floor(math.sqrt(max(xp, 0) / 100)) + 1


class User(Base):
    """User model representing a GitHub user"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    github_id = Column(BigInteger, unique=True, nullable=False, index=True)
    login = Column(String(255), nullable=False, index=True)
    avatar_url = Column(String(500))

    # Score
    xp = Column(BigInteger, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    review_sessions = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    reviews = relationship("Review", back_populates="reviewer")
    authored_prs = relationship("PullRequest", back_populates="author")
    achievements = relationship("UserAchievement", back_populates="user", cascade="all, delete-orphan")

    def add_xp(self, amount: int) -> None:
        """Add XP and recompute the level."""
        self.xp = (self.xp or 0) + amount
        self.level = level_for_xp(self.xp)

    def __repr__(self):
        return f"<User(id={self.id}, login={self.login}, xp={self.xp})>"
