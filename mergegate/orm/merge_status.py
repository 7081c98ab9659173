"""ORM model for the per-pull-request merge status aggregate."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class MergeStatus(SqlalchemyBase):
    """Derived mergeability verdict for a pull request.

    Always recomputed from the full comment set of every review on the pull
    request; never incremented in place.
    """

    __tablename__ = "pr_merge_status"

    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    can_merge: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    blocked_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_checked: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MergeStatus(pull_request_id={self.pull_request_id}, can_merge={self.can_merge}, "
            f"resolved={self.resolved_comments}/{self.total_comments}, "
            f"critical={self.critical_issues})>"
        )
