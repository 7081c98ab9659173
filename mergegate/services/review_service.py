"""Review ingestion: persist an analysis and establish the merge status."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..analysis import AnalysisComment, CodeReviewAnalysis, parse_analysis
from ..errors import NotFoundError, UpstreamError
from ..orm.ai_review import AiReview
from ..orm.insights import CodeContext, LearningPattern, ReviewInsight
from ..orm.merge_status import MergeStatus
from ..orm.pull_request import PrFile, PullRequest
from ..orm.review_comment import ReviewComment
from .analysis_service import ReviewAnalysisService
from .database import DatabaseService
from .merge_status_service import MergeStatusService

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Everything written for one review generation."""

    review: AiReview
    comments: list[ReviewComment]
    merge_status: MergeStatus
    insight: Optional[ReviewInsight] = None
    code_contexts: list[CodeContext] = field(default_factory=list)
    learning_patterns: list[LearningPattern] = field(default_factory=list)
    failed_comments: int = 0


class ReviewService:
    """Generate and ingest AI reviews for pull requests."""

    def __init__(
        self,
        db_service: DatabaseService,
        merge_status_service: MergeStatusService,
        analysis_service: Optional[ReviewAnalysisService] = None,
        analysis_timeout: float = 120.0,
    ):
        """Initialize review service.

        Args:
            db_service: Database service
            merge_status_service: Service that owns the merge status aggregate
            analysis_service: Model-backed analyzer; generate_review needs it
            analysis_timeout: Seconds to wait for the model before giving up
        """
        self.db = db_service
        self.merge_status = merge_status_service
        self.analysis = analysis_service
        self.analysis_timeout = analysis_timeout

    async def generate_review(self, pull_request_id: str) -> IngestionResult:
        """Analyze a pull request's diffs with the model and ingest the result.

        Nothing is written when the model fails or times out.

        Raises:
            NotFoundError: If the pull request does not exist.
            UpstreamError: If no model is configured, or the model fails or times out.
            UpstreamAnalysisError: If the model returns a malformed analysis.
        """
        if self.analysis is None:
            raise UpstreamError("No analysis model is configured")

        pull_request = await self._get_pull_request(pull_request_id)
        files = await self._get_files(pull_request_id)

        try:
            analysis = await asyncio.wait_for(
                self.analysis.analyze(pull_request.title, pull_request.description or "", files),
                timeout=self.analysis_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "Analysis of pull request %s timed out after %.0fs",
                pull_request_id,
                self.analysis_timeout,
            )
            raise UpstreamError(
                f"Analysis timed out after {self.analysis_timeout:.0f} seconds"
            ) from e

        return await self.ingest_review(pull_request_id, analysis)

    async def ingest_review(
        self, pull_request_id: str, analysis: CodeReviewAnalysis | dict[str, Any]
    ) -> IngestionResult:
        """Persist a finished analysis and refresh the pull request's merge status.

        Steps run in order under the pull request's lock: review record, each
        comment in input order, side records, the pull request's cached review
        status, and finally the merge status. A comment that fails to insert is
        logged and skipped, and the count is kept on the review so the pull
        request stays blocked until it is reviewed again. If the merge status
        cannot be recomputed, an existing one is marked pending before the
        error surfaces.

        Args:
            pull_request_id: Pull request the analysis belongs to
            analysis: Validated analysis or its raw JSON form

        Returns:
            IngestionResult with the stored records

        Raises:
            NotFoundError: If the pull request does not exist
            UpstreamAnalysisError: If the analysis is structurally invalid
            UpstreamError: If the review record or merge status cannot be written
        """
        pull_request = await self._get_pull_request(pull_request_id)
        analysis = parse_analysis(analysis)
        files = await self._get_files(pull_request_id)
        file_ids = {f.filename: f.id for f in files}

        async with self.merge_status.locks.hold(pull_request_id):
            review = await self._persist_review(pull_request_id, analysis)

            comments: list[ReviewComment] = []
            failed = 0
            for position, descriptor in enumerate(analysis.comments):
                try:
                    comments.append(
                        await self._persist_comment(review.id, position, descriptor, file_ids)
                    )
                except SQLAlchemyError as e:
                    failed += 1
                    logger.error(
                        "Failed to store comment %d of review %s: %s", position, review.id, e
                    )

            insight = await self._persist_insight(pull_request_id, review.id, analysis)
            code_contexts = await self._persist_code_contexts(
                pull_request_id, review.id, analysis, file_ids
            )
            patterns = await self._persist_learning_patterns(pull_request.repository_id, analysis)
            await self._update_review_status(pull_request_id, analysis.overall_rating)

            try:
                if failed:
                    await self._record_failed_comments(review, failed)
                merge_status = await self.merge_status.recompute_locked(pull_request_id)
            except UpstreamError:
                await self.merge_status.mark_pending(pull_request_id)
                raise

        logger.info(
            "Ingested review %s for pull request %s: %d comments stored, %d failed",
            review.id,
            pull_request_id,
            len(comments),
            failed,
        )
        return IngestionResult(
            review=review,
            comments=comments,
            merge_status=merge_status,
            insight=insight,
            code_contexts=code_contexts,
            learning_patterns=patterns,
            failed_comments=failed,
        )

    async def get_latest_review(self, pull_request_id: str) -> AiReview:
        """Get the most recently created review of a pull request."""
        async with self.db.session() as session:
            result = await session.execute(
                select(AiReview)
                .where(AiReview.pull_request_id == pull_request_id)
                .order_by(AiReview.created_at.desc())
                .limit(1)
            )
            review = result.scalar_one_or_none()

        if review is None:
            raise NotFoundError(f"No review found for pull request {pull_request_id}")
        return review

    async def _get_pull_request(self, pull_request_id: str) -> PullRequest:
        async with self.db.session() as session:
            pull_request = await session.get(PullRequest, pull_request_id)
        if pull_request is None:
            raise NotFoundError(f"Pull request {pull_request_id} not found")
        return pull_request

    async def _get_files(self, pull_request_id: str) -> list[PrFile]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PrFile).where(PrFile.pull_request_id == pull_request_id)
            )
            return list(result.scalars().all())

    async def _persist_review(self, pull_request_id: str, analysis: CodeReviewAnalysis) -> AiReview:
        try:
            async with self.db.session() as session:
                review = AiReview(
                    pull_request_id=pull_request_id,
                    overall_rating=analysis.overall_rating,
                    code_quality_score=analysis.code_quality_score,
                    test_coverage=analysis.test_coverage,
                    security_issues=analysis.security_issues,
                    performance_issues=analysis.performance_issues,
                    summary=analysis.summary,
                    # Explicit so that reviews created within the same second still order
                    created_at=datetime.now(timezone.utc),
                )
                session.add(review)
                await session.commit()
                await session.refresh(review)
                return review
        except SQLAlchemyError as e:
            raise UpstreamError(f"Failed to store review for pull request {pull_request_id}") from e

    async def _persist_comment(
        self,
        review_id: str,
        position: int,
        descriptor: AnalysisComment,
        file_ids: dict[str, str],
    ) -> ReviewComment:
        async with self.db.session() as session:
            comment = ReviewComment(
                ai_review_id=review_id,
                file_id=file_ids.get(descriptor.filename) if descriptor.filename else None,
                file_path=descriptor.filename,
                line_number=descriptor.line_number,
                comment_type=descriptor.comment_type,
                severity=descriptor.severity,
                message=descriptor.message,
                suggestion=descriptor.suggestion,
                position=position,
            )
            session.add(comment)
            await session.commit()
            await session.refresh(comment)
            return comment

    async def _record_failed_comments(self, review: AiReview, failed: int) -> None:
        try:
            async with self.db.session() as session:
                stored = await session.get(AiReview, review.id)
                stored.failed_comments = failed
                await session.commit()
        except SQLAlchemyError as e:
            raise UpstreamError(
                f"Failed to record {failed} unstored comments of review {review.id}"
            ) from e
        review.failed_comments = failed

    async def _persist_insight(
        self, pull_request_id: str, review_id: str, analysis: CodeReviewAnalysis
    ) -> Optional[ReviewInsight]:
        if analysis.insights is None:
            return None

        data = analysis.insights
        try:
            async with self.db.session() as session:
                insight = ReviewInsight(
                    pull_request_id=pull_request_id,
                    ai_review_id=review_id,
                    category=data.category,
                    risk_level=data.risk_level,
                    change_type=data.change_type,
                    impact_score=data.impact_score,
                    review_time=data.review_time,
                    educational_value=data.educational_value,
                )
                session.add(insight)
                await session.commit()
                await session.refresh(insight)
                return insight
        except SQLAlchemyError as e:
            logger.error("Failed to store insight for review %s: %s", review_id, e)
            return None

    async def _persist_code_contexts(
        self,
        pull_request_id: str,
        review_id: str,
        analysis: CodeReviewAnalysis,
        file_ids: dict[str, str],
    ) -> list[CodeContext]:
        stored = []
        for entry in analysis.context_analysis:
            file_id = file_ids.get(entry.filename)
            if file_id is None:
                logger.debug("Skipping context for unknown file %s", entry.filename)
                continue

            try:
                async with self.db.session() as session:
                    context = CodeContext(
                        pull_request_id=pull_request_id,
                        ai_review_id=review_id,
                        file_id=file_id,
                        dependencies=entry.dependencies,
                        complexity=entry.complexity,
                        maintainability_index=entry.maintainability_index,
                        tech_debt=entry.tech_debt_score,
                    )
                    session.add(context)
                    await session.commit()
                    await session.refresh(context)
                    stored.append(context)
            except SQLAlchemyError as e:
                logger.error("Failed to store code context for %s: %s", entry.filename, e)
        return stored

    async def _persist_learning_patterns(
        self, repository_id: str, analysis: CodeReviewAnalysis
    ) -> list[LearningPattern]:
        stored = []
        for observation in analysis.learning_patterns:
            try:
                async with self.db.session() as session:
                    pattern = LearningPattern(
                        repository_id=repository_id,
                        pattern_type=observation.pattern_type,
                        pattern=observation.pattern,
                        confidence=observation.confidence,
                        last_seen=datetime.now(timezone.utc),
                    )
                    session.add(pattern)
                    await session.commit()
                    await session.refresh(pattern)
                    stored.append(pattern)
            except SQLAlchemyError as e:
                logger.error("Failed to store learning pattern %r: %s", observation.pattern, e)
        return stored

    async def _update_review_status(self, pull_request_id: str, rating: str) -> None:
        try:
            async with self.db.session() as session:
                pull_request = await session.get(PullRequest, pull_request_id)
                if pull_request is not None:
                    pull_request.review_status = rating
                    await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to update review status of pull request %s: %s", pull_request_id, e)
