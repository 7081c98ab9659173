"""ORM models for database persistence."""

from .ai_review import AiReview
from .base import Base, SqlalchemyBase
from .insights import CodeContext, LearningPattern, ReviewInsight
from .merge_status import MergeStatus
from .pull_request import PrFile, PullRequest
from .repository import Repository
from .review_comment import (
    BLOCKING_SEVERITIES,
    COMMENT_DISMISSED,
    COMMENT_OPEN,
    COMMENT_RESOLVED,
    ReviewComment,
)

__all__ = [
    "Base",
    "SqlalchemyBase",
    "AiReview",
    "CodeContext",
    "LearningPattern",
    "MergeStatus",
    "PrFile",
    "PullRequest",
    "Repository",
    "ReviewComment",
    "ReviewInsight",
    "BLOCKING_SEVERITIES",
    "COMMENT_DISMISSED",
    "COMMENT_OPEN",
    "COMMENT_RESOLVED",
]
