"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RepositoryCreate(BaseModel):
    full_name: str = Field(..., min_length=1, description="owner/name")
    name: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    description: Optional[str] = None
    default_branch: str = "main"
    github_id: Optional[int] = None
    is_private: bool = False


class PullRequestCreate(BaseModel):
    repository_id: str
    number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    author: str
    base_branch: str
    head_branch: str
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changed_files: int = Field(default=0, ge=0)
    github_id: Optional[int] = None


class PrFileCreate(BaseModel):
    filename: str = Field(..., min_length=1)
    status: Literal["added", "modified", "deleted", "renamed"]
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    patch: Optional[str] = None
    previous_filename: Optional[str] = None


class ResolutionRequest(BaseModel):
    """Body of resolve and dismiss calls; dismissal requires the note."""

    resolution_note: Optional[str] = None


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RepositoryOut(_OrmModel):
    id: str
    full_name: str
    name: str
    owner: str
    description: Optional[str] = None
    default_branch: str
    github_id: Optional[int] = None
    is_private: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PullRequestOut(_OrmModel):
    id: str
    repository_id: str
    number: int
    title: str
    description: Optional[str] = None
    author: str
    base_branch: str
    head_branch: str
    status: str
    review_status: str
    additions: int
    deletions: int
    changed_files: int
    github_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PrFileOut(_OrmModel):
    id: str
    pull_request_id: str
    filename: str
    status: str
    additions: int
    deletions: int
    patch: Optional[str] = None
    previous_filename: Optional[str] = None


class ReviewCommentOut(_OrmModel):
    id: str
    ai_review_id: str
    file_id: Optional[str] = None
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    comment_type: str
    severity: str
    message: str
    suggestion: Optional[str] = None
    status: str
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: Optional[datetime] = None


class AiReviewOut(_OrmModel):
    id: str
    pull_request_id: str
    overall_rating: str
    code_quality_score: int
    test_coverage: float
    security_issues: int
    performance_issues: int
    summary: Optional[str] = None
    failed_comments: int = 0
    created_at: Optional[datetime] = None


class ReviewWithCommentsOut(AiReviewOut):
    comments: List[ReviewCommentOut] = []


class MergeStatusOut(_OrmModel):
    pull_request_id: str
    can_merge: bool
    blocked_reason: Optional[str] = None
    total_comments: int
    resolved_comments: int
    critical_issues: int
    last_checked: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewInsightOut(_OrmModel):
    id: str
    pull_request_id: str
    ai_review_id: str
    category: Optional[str] = None
    risk_level: Optional[str] = None
    change_type: Optional[str] = None
    impact_score: Optional[int] = None
    review_time: Optional[int] = None
    educational_value: Optional[str] = None


class CodeContextOut(_OrmModel):
    id: str
    pull_request_id: str
    ai_review_id: str
    file_id: str
    dependencies: List[str] = []
    complexity: Optional[int] = None
    maintainability_index: Optional[float] = None
    tech_debt: Optional[float] = None


class LearningPatternOut(_OrmModel):
    id: str
    repository_id: str
    pattern_type: str
    pattern: str
    confidence: float
    occurrences: int
    last_seen: Optional[datetime] = None


class IngestionResultOut(_OrmModel):
    review: AiReviewOut
    comments: List[ReviewCommentOut]
    merge_status: MergeStatusOut
    insight: Optional[ReviewInsightOut] = None
    code_contexts: List[CodeContextOut] = []
    learning_patterns: List[LearningPatternOut] = []
    failed_comments: int = 0
