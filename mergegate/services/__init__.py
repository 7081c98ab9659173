"""Service layer for business logic and database operations."""

from .analysis_service import ReviewAnalysisService
from .comment_service import CommentService
from .database import DatabaseService, get_db_service, init_db_service
from .merge_status_service import (
    MergeStatusService,
    MergeVerdict,
    PullRequestLocks,
    compute_merge_verdict,
)
from .pull_request_service import PullRequestService
from .review_service import IngestionResult, ReviewService

__all__ = [
    "CommentService",
    "DatabaseService",
    "IngestionResult",
    "MergeStatusService",
    "MergeVerdict",
    "PullRequestLocks",
    "PullRequestService",
    "ReviewAnalysisService",
    "ReviewService",
    "compute_merge_verdict",
    "get_db_service",
    "init_db_service",
]
