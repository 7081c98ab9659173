"""FastAPI application exposing review ingestion and merge gating."""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from fastapi import Body, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import Config
from .errors import MergeGateError
from .schemas import (
    AiReviewOut,
    CodeContextOut,
    IngestionResultOut,
    LearningPatternOut,
    MergeStatusOut,
    PrFileCreate,
    PrFileOut,
    PullRequestCreate,
    PullRequestOut,
    RepositoryCreate,
    RepositoryOut,
    ResolutionRequest,
    ReviewCommentOut,
    ReviewInsightOut,
    ReviewWithCommentsOut,
)
from .services import (
    CommentService,
    DatabaseService,
    MergeStatusService,
    PullRequestService,
    ReviewAnalysisService,
    ReviewService,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "not_found": 404,
    "conflict": 409,
    "validation_error": 422,
    "upstream_error": 502,
}


@dataclass
class AppServices:
    """Services shared by all request handlers."""

    pull_requests: PullRequestService
    reviews: ReviewService
    comments: CommentService
    merge_status: MergeStatusService


def build_services(
    config: Config,
    db_service: DatabaseService,
    analysis_service: Optional[ReviewAnalysisService] = None,
) -> AppServices:
    """Wire services together around one database and one lock registry.

    Args:
        config: Application configuration
        db_service: Initialized database service
        analysis_service: Model-backed analyzer, or None to disable generation

    Returns:
        AppServices bundle
    """
    merge_status = MergeStatusService(
        db_service,
        max_retries=config.merge_gate.recompute_max_retries,
        retry_delay=config.merge_gate.recompute_retry_delay,
    )
    return AppServices(
        pull_requests=PullRequestService(db_service),
        reviews=ReviewService(
            db_service,
            merge_status,
            analysis_service=analysis_service,
            analysis_timeout=config.merge_gate.analysis_timeout_seconds,
        ),
        comments=CommentService(db_service, merge_status),
        merge_status=merge_status,
    )


def require_user(x_user_id: Optional[str]) -> str:
    """Return the acting user's identity, supplied by the authenticating proxy."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User identity required")
    return x_user_id.strip()


def create_app(services: AppServices) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Service bundle from build_services

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Merge Gate",
        description="AI pull request review ingestion and merge gating",
        version="1.0.0",
    )
    app.state.services = services

    @app.exception_handler(MergeGateError)
    async def merge_gate_error_handler(request: Request, exc: MergeGateError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(exc.to_dict(), status_code=status_code)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "mergegate"}

    # Repositories

    @app.get("/api/repositories", response_model=List[RepositoryOut])
    async def list_repositories():
        repositories = await services.pull_requests.list_repositories()
        return [RepositoryOut.model_validate(r) for r in repositories]

    @app.post("/api/repositories", response_model=RepositoryOut, status_code=201)
    async def create_repository(body: RepositoryCreate):
        repository = await services.pull_requests.create_repository(**body.model_dump())
        return RepositoryOut.model_validate(repository)

    @app.get("/api/repositories/{repository_id}", response_model=RepositoryOut)
    async def get_repository(repository_id: str):
        return RepositoryOut.model_validate(
            await services.pull_requests.get_repository(repository_id)
        )

    @app.get("/api/repositories/{repository_id}/patterns", response_model=List[LearningPatternOut])
    async def get_learning_patterns(repository_id: str):
        patterns = await services.pull_requests.get_learning_patterns(repository_id)
        return [LearningPatternOut.model_validate(p) for p in patterns]

    # Pull requests

    @app.get("/api/pull-requests", response_model=List[PullRequestOut])
    async def list_pull_requests(repository_id: Optional[str] = None):
        pull_requests = await services.pull_requests.list_pull_requests(repository_id)
        return [PullRequestOut.model_validate(pr) for pr in pull_requests]

    @app.post("/api/pull-requests", response_model=PullRequestOut, status_code=201)
    async def create_pull_request(body: PullRequestCreate):
        pull_request = await services.pull_requests.create_pull_request(**body.model_dump())
        return PullRequestOut.model_validate(pull_request)

    @app.get("/api/pull-requests/{pull_request_id}", response_model=PullRequestOut)
    async def get_pull_request(pull_request_id: str):
        return PullRequestOut.model_validate(
            await services.pull_requests.get_pull_request(pull_request_id)
        )

    @app.get("/api/pull-requests/{pull_request_id}/files", response_model=List[PrFileOut])
    async def list_files(pull_request_id: str):
        files = await services.pull_requests.list_files(pull_request_id)
        return [PrFileOut.model_validate(f) for f in files]

    @app.post("/api/pull-requests/{pull_request_id}/files", response_model=PrFileOut, status_code=201)
    async def add_file(pull_request_id: str, body: PrFileCreate):
        pr_file = await services.pull_requests.add_file(pull_request_id, **body.model_dump())
        return PrFileOut.model_validate(pr_file)

    # Reviews

    @app.get("/api/pull-requests/{pull_request_id}/review", response_model=ReviewWithCommentsOut)
    async def get_review(pull_request_id: str):
        review = await services.reviews.get_latest_review(pull_request_id)
        comments = await services.comments.get_review_comments(review.id)
        return ReviewWithCommentsOut(
            **AiReviewOut.model_validate(review).model_dump(),
            comments=[ReviewCommentOut.model_validate(c) for c in comments],
        )

    @app.post("/api/pull-requests/{pull_request_id}/review", response_model=IngestionResultOut)
    async def generate_review(pull_request_id: str):
        """Run the model over the pull request's diffs and ingest the result."""
        if services.reviews.analysis is None:
            raise HTTPException(status_code=503, detail="No analysis model configured")
        result = await services.reviews.generate_review(pull_request_id)
        return IngestionResultOut.model_validate(result)

    @app.post("/api/pull-requests/{pull_request_id}/analysis", response_model=IngestionResultOut)
    async def ingest_analysis(pull_request_id: str, payload: Any = Body(...)):
        """Ingest an analysis produced elsewhere."""
        result = await services.reviews.ingest_review(pull_request_id, payload)
        return IngestionResultOut.model_validate(result)

    @app.get("/api/pull-requests/{pull_request_id}/insights", response_model=List[ReviewInsightOut])
    async def get_insights(pull_request_id: str):
        insights = await services.pull_requests.get_review_insights(pull_request_id)
        return [ReviewInsightOut.model_validate(i) for i in insights]

    @app.get("/api/pull-requests/{pull_request_id}/context", response_model=List[CodeContextOut])
    async def get_code_context(pull_request_id: str):
        contexts = await services.pull_requests.get_code_context(pull_request_id)
        return [CodeContextOut.model_validate(c) for c in contexts]

    # Comment resolution

    @app.post("/api/comments/{comment_id}/resolve", response_model=MergeStatusOut)
    async def resolve_comment(
        comment_id: str,
        body: Optional[ResolutionRequest] = None,
        x_user_id: Optional[str] = Header(default=None),
    ):
        user_id = require_user(x_user_id)
        note = body.resolution_note if body else None
        status = await services.comments.resolve_comment(comment_id, user_id, note)
        return MergeStatusOut.model_validate(status)

    @app.post("/api/comments/{comment_id}/dismiss", response_model=MergeStatusOut)
    async def dismiss_comment(
        comment_id: str,
        body: Optional[ResolutionRequest] = None,
        x_user_id: Optional[str] = Header(default=None),
    ):
        user_id = require_user(x_user_id)
        note = body.resolution_note if body else None
        status = await services.comments.dismiss_comment(comment_id, user_id, note)
        return MergeStatusOut.model_validate(status)

    @app.get(
        "/api/pull-requests/{pull_request_id}/unresolved-comments",
        response_model=List[ReviewCommentOut],
    )
    async def get_unresolved_comments(pull_request_id: str):
        comments = await services.comments.get_unresolved_comments(pull_request_id)
        return [ReviewCommentOut.model_validate(c) for c in comments]

    # Merge status

    @app.get("/api/pull-requests/{pull_request_id}/merge-status", response_model=MergeStatusOut)
    async def get_merge_status(pull_request_id: str):
        return MergeStatusOut.model_validate(
            await services.merge_status.get_merge_status(pull_request_id)
        )

    @app.post(
        "/api/pull-requests/{pull_request_id}/check-merge-eligibility",
        response_model=MergeStatusOut,
    )
    async def check_merge_eligibility(pull_request_id: str):
        return MergeStatusOut.model_validate(
            await services.merge_status.check_merge_eligibility(pull_request_id)
        )

    return app


