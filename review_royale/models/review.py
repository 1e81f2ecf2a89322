"""Review and ReviewComment models"""

import enum

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from review_royale.core.database import Base


class ReviewState(str, enum.Enum):
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"
    PENDING = "pending"

    @classmethod
    def from_github(cls, value: str | None) -> "ReviewState":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.PENDING


class Review(Base):
    """One submitted review on a pull request"""

    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    github_id = Column(BigInteger, unique=True, nullable=False, index=True)
    state = Column(String(30), nullable=False)
    body = Column(Text)
    comments_count = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, nullable=False, index=True)

    # XP of the session this review starts; 0 for every other review
    xp_earned = Column(Integer, nullable=False, default=0)

    pull_request = relationship("PullRequest", back_populates="reviews")
    reviewer = relationship("User", back_populates="reviews")
    comments = relationship("ReviewComment", back_populates="review")

    def __repr__(self):
        return f"<Review(id={self.id}, state={self.state}, submitted_at={self.submitted_at})>"


class ReviewComment(Base):
    """Inline review comment; category and quality_score are filled in by categorization"""

    __tablename__ = "review_comments"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id"), index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    github_id = Column(BigInteger, unique=True, nullable=False, index=True)
    body = Column(Text, nullable=False, default="")
    path = Column(String(500))
    line = Column(Integer)
    created_at = Column(DateTime, nullable=False, index=True)

    # AI categorization
    category = Column(String(20), index=True)  # cosmetic, logic, structural, nit, question
    quality_score = Column(Integer)  # 1-10

    review = relationship("Review", back_populates="comments")

    def __repr__(self):
        return f"<ReviewComment(id={self.id}, category={self.category}, quality_score={self.quality_score})>"
