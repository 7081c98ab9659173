"""ORM model for connected source repositories."""

from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Repository(SqlalchemyBase):
    """A repository whose pull requests are reviewed."""

    __tablename__ = "repositories"
    __table_args__ = (
        Index("idx_repositories_full_name", "full_name"),
        Index("idx_repositories_updated_at", "updated_at"),
    )

    full_name: Mapped[str] = mapped_column(String, nullable=False)  # owner/name
    name: Mapped[str] = mapped_column(String, nullable=False)
    owner: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    default_branch: Mapped[str] = mapped_column(String, nullable=False, default="main")
    github_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, unique=True)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Repository(id={self.id}, full_name={self.full_name})>"
