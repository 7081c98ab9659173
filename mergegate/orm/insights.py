"""ORM models for write-once records stored alongside a review."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class ReviewInsight(SqlalchemyBase):
    """Risk and impact classification of a reviewed change."""

    __tablename__ = "review_insights"
    __table_args__ = (Index("idx_review_insights_pull_request_id", "pull_request_id"),)

    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    ai_review_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_reviews.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    risk_level: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # low, medium, high
    change_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    impact_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    review_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # minutes
    educational_value: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class CodeContext(SqlalchemyBase):
    """Per-file dependency and maintainability analysis."""

    __tablename__ = "code_context"
    __table_args__ = (Index("idx_code_context_pull_request_id", "pull_request_id"),)

    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    ai_review_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_reviews.id", ondelete="CASCADE"), nullable=False
    )
    file_id: Mapped[str] = mapped_column(
        String, ForeignKey("pr_files.id", ondelete="CASCADE"), nullable=False
    )
    dependencies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    complexity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    maintainability_index: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tech_debt: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class LearningPattern(SqlalchemyBase):
    """A recurring code pattern observed in a repository."""

    __tablename__ = "learning_patterns"
    __table_args__ = (
        Index("idx_learning_patterns_repository_id", "repository_id"),
        Index("idx_learning_patterns_confidence", "confidence"),
    )

    repository_id: Mapped[str] = mapped_column(
        String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    pattern_type: Mapped[str] = mapped_column(String, nullable=False)
    pattern: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_seen: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
