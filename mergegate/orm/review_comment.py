"""ORM model for review comments and their resolution lifecycle."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase

COMMENT_OPEN = "open"
COMMENT_RESOLVED = "resolved"
COMMENT_DISMISSED = "dismissed"

BLOCKING_SEVERITIES = frozenset({"high", "critical"})


class ReviewComment(SqlalchemyBase):
    """A single finding attached to an AI review."""

    __tablename__ = "review_comments"
    __table_args__ = (
        Index("idx_review_comments_ai_review_id", "ai_review_id"),
        Index("idx_review_comments_status", "status"),
        Index("idx_review_comments_review_status", "ai_review_id", "status"),
    )

    ai_review_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_reviews.id", ondelete="CASCADE"), nullable=False
    )
    file_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("pr_files.id", ondelete="SET NULL"), nullable=True
    )
    file_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    line_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    comment_type: Mapped[str] = mapped_column(String, nullable=False)  # security, enhancement, bug, style
    severity: Mapped[str] = mapped_column(String, nullable=False, default="low")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    suggestion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Index within the analysis that produced it
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Resolution state, written together on a single transition
    status: Mapped[str] = mapped_column(String, nullable=False, default=COMMENT_OPEN)
    resolved_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReviewComment(id={self.id}, review={self.ai_review_id}, "
            f"severity={self.severity}, status={self.status})>"
        )
