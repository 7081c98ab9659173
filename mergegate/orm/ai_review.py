"""ORM model for generated AI reviews."""

from typing import Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class AiReview(SqlalchemyBase):
    """One analysis pass over a pull request.

    Scores are fixed once written. ``failed_comments`` is set after the comment
    inserts when some of them could not be stored; while the latest review has
    any, the pull request stays blocked.
    """

    __tablename__ = "ai_reviews"
    __table_args__ = (
        Index("idx_ai_reviews_pull_request_id", "pull_request_id"),
        Index("idx_ai_reviews_created_at", "created_at"),
    )

    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    overall_rating: Mapped[str] = mapped_column(String, nullable=False)  # approved, changes_requested, commented
    code_quality_score: Mapped[int] = mapped_column(Integer, nullable=False)
    test_coverage: Mapped[float] = mapped_column(Float, nullable=False)
    security_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    performance_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failed_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AiReview(id={self.id}, pull_request_id={self.pull_request_id}, "
            f"rating={self.overall_rating}, score={self.code_quality_score})>"
        )
