"""ORM models for pull requests and their changed files."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class PullRequest(SqlalchemyBase):
    """A pull request under review."""

    __tablename__ = "pull_requests"
    __table_args__ = (
        Index("idx_pull_requests_repository_id", "repository_id"),
        Index("idx_pull_requests_created_at", "created_at"),
    )

    repository_id: Mapped[str] = mapped_column(
        String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[str] = mapped_column(String, nullable=False)
    base_branch: Mapped[str] = mapped_column(String, nullable=False)
    head_branch: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")  # open, closed, merged

    # Mirrors the latest review's overall rating for list views
    review_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    additions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deletions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changed_files: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    github_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, unique=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PullRequest(id={self.id}, number={self.number}, "
            f"status={self.status}, review_status={self.review_status})>"
        )


class PrFile(SqlalchemyBase):
    """A file touched by a pull request, with its diff."""

    __tablename__ = "pr_files"
    __table_args__ = (Index("idx_pr_files_pull_request_id", "pull_request_id"),)

    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    filename: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)  # added, modified, deleted, renamed
    additions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deletions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    patch: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_filename: Mapped[Optional[str]] = mapped_column(String, nullable=True)
