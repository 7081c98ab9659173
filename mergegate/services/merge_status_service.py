"""Service for deriving and persisting the per-pull-request merge status."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional, Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, UpstreamError
from ..orm.ai_review import AiReview
from ..orm.merge_status import MergeStatus
from ..orm.pull_request import PullRequest
from ..orm.review_comment import BLOCKING_SEVERITIES, COMMENT_OPEN, ReviewComment
from ..resilience import retry_with_backoff
from .database import DatabaseService

logger = logging.getLogger(__name__)

# Storage failures that are safe to retry because recomputation is idempotent.
# IntegrityError covers two writers racing to create the same aggregate row.
RETRYABLE_STORAGE_ERRORS = (OperationalError, IntegrityError)

REASSESSMENT_PENDING = "Reassessment pending: the latest review could not be fully assessed"


class CommentState(Protocol):
    status: str
    severity: str


@dataclass(frozen=True)
class MergeVerdict:
    """Aggregate values derived from a pull request's full comment set."""

    can_merge: bool
    blocked_reason: Optional[str]
    total_comments: int
    resolved_comments: int
    critical_issues: int

    @property
    def open_comments(self) -> int:
        return self.total_comments - self.resolved_comments


def _blocked_reason(open_count: int, critical_count: int, missing_count: int) -> Optional[str]:
    if missing_count > 0:
        noun = "comment" if missing_count == 1 else "comments"
        return f"{missing_count} review {noun} failed to store; re-run the review"
    if open_count == 0:
        return None
    if critical_count > 0:
        noun = "issue" if critical_count == 1 else "issues"
        return f"{critical_count} critical/high severity {noun} must be resolved"
    if open_count == 1:
        return "1 unresolved comment needs to be addressed"
    return f"{open_count} unresolved comments need to be addressed"


def compute_merge_verdict(
    comments: Iterable[CommentState], missing_comments: int = 0
) -> MergeVerdict:
    """Derive the merge verdict for every comment of every review on a pull request.

    A pull request may merge only when none of its comments is still open;
    resolved and dismissed comments both count as settled. Open comments of
    high or critical severity are counted separately and drive the wording of
    the blocking reason, but any open comment blocks.

    ``missing_comments`` is the number of findings of the latest review that
    never reached storage. Their state is unknown, so any of them blocks.
    """
    comments = list(comments)
    open_comments = [c for c in comments if c.status == COMMENT_OPEN]
    critical = sum(1 for c in open_comments if c.severity in BLOCKING_SEVERITIES)

    return MergeVerdict(
        can_merge=not open_comments and missing_comments == 0,
        blocked_reason=_blocked_reason(len(open_comments), critical, missing_comments),
        total_comments=len(comments),
        resolved_comments=len(comments) - len(open_comments),
        critical_issues=critical,
    )


async def load_pull_request_comments(
    session: AsyncSession, pull_request_id: str, status: Optional[str] = None
) -> Sequence[ReviewComment]:
    """Load comments across all reviews of a pull request, oldest review first."""
    query = (
        select(ReviewComment)
        .join(AiReview, ReviewComment.ai_review_id == AiReview.id)
        .where(AiReview.pull_request_id == pull_request_id)
    )
    if status is not None:
        query = query.where(ReviewComment.status == status)

    result = await session.execute(
        query.order_by(
            AiReview.created_at,
            ReviewComment.line_number.is_(None),
            ReviewComment.line_number,
            ReviewComment.position,
        )
    )
    return result.scalars().all()


async def load_missing_comment_count(session: AsyncSession, pull_request_id: str) -> int:
    """Count comments of the latest review that failed to store."""
    result = await session.execute(
        select(AiReview.failed_comments)
        .where(AiReview.pull_request_id == pull_request_id)
        .order_by(AiReview.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none() or 0


class PullRequestLocks:
    """Per-pull-request serialization point for aggregate writers.

    Ingestion and comment resolution for the same pull request must not
    interleave their read-modify-write of the merge status. A lock is dropped
    once no task holds or waits on it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, pull_request_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(pull_request_id)
        if lock is None:
            lock = self._locks[pull_request_id] = asyncio.Lock()
        self._users[pull_request_id] = self._users.get(pull_request_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[pull_request_id] -= 1
            if self._users[pull_request_id] == 0:
                del self._users[pull_request_id]
                del self._locks[pull_request_id]


class MergeStatusService:
    """Recompute, persist and read the merge status aggregate."""

    def __init__(
        self,
        db_service: DatabaseService,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        locks: PullRequestLocks | None = None,
    ):
        """Initialize merge status service.

        Args:
            db_service: Database service
            max_retries: Attempts per recomputation before surfacing UpstreamError
            retry_delay: Initial backoff between attempts, in seconds
            locks: Shared lock registry; pass the same one to every writer
        """
        self.db = db_service
        self.locks = locks or PullRequestLocks()
        self.max_retries = max_retries
        self._recompute_with_retry = retry_with_backoff(
            max_retries=max_retries,
            base_delay=retry_delay,
            exceptions=RETRYABLE_STORAGE_ERRORS,
        )(self._recompute_once)

    async def recompute(self, pull_request_id: str) -> MergeStatus:
        """Recompute and persist the aggregate under the pull request's lock."""
        async with self.locks.hold(pull_request_id):
            return await self.recompute_locked(pull_request_id)

    async def recompute_locked(self, pull_request_id: str) -> MergeStatus:
        """Recompute and persist the aggregate.

        The caller must already hold ``self.locks.hold(pull_request_id)``.

        Raises:
            UpstreamError: If storage keeps failing after all retries.
        """
        try:
            return await self._recompute_with_retry(pull_request_id)
        except RETRYABLE_STORAGE_ERRORS as e:
            raise UpstreamError(
                f"Failed to update merge status for pull request {pull_request_id} "
                f"after {self.max_retries} attempts"
            ) from e

    async def mark_pending(self, pull_request_id: str) -> None:
        """Block an existing aggregate until it can be recomputed.

        Used when new comments were stored but the recomputation failed, so the
        stored verdict no longer describes the comment set. A pull request
        without an aggregate row stays unassessed. Best-effort: a storage
        failure here is logged and swallowed so the original error surfaces.

        The caller must already hold ``self.locks.hold(pull_request_id)``.
        """
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(MergeStatus)
                    .where(MergeStatus.pull_request_id == pull_request_id)
                    .with_for_update()
                )
                status = result.scalar_one_or_none()
                if status is None:
                    return

                now = datetime.now(timezone.utc)
                status.can_merge = False
                status.blocked_reason = REASSESSMENT_PENDING
                status.last_checked = now
                status.updated_at = now
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to mark merge status of pull request %s as pending: %s", pull_request_id, e
            )
            return

        logger.warning("Merge status for pull request %s marked pending reassessment", pull_request_id)

    async def _recompute_once(self, pull_request_id: str) -> MergeStatus:
        async with self.db.session() as session:
            comments = await load_pull_request_comments(session, pull_request_id)
            missing = await load_missing_comment_count(session, pull_request_id)
            verdict = compute_merge_verdict(comments, missing)
            now = datetime.now(timezone.utc)

            result = await session.execute(
                select(MergeStatus)
                .where(MergeStatus.pull_request_id == pull_request_id)
                .with_for_update()
            )
            status = result.scalar_one_or_none()
            if status is None:
                status = MergeStatus(pull_request_id=pull_request_id)
                session.add(status)

            status.can_merge = verdict.can_merge
            status.blocked_reason = verdict.blocked_reason
            status.total_comments = verdict.total_comments
            status.resolved_comments = verdict.resolved_comments
            status.critical_issues = verdict.critical_issues
            status.last_checked = now
            status.updated_at = now

            await session.commit()
            await session.refresh(status)

        logger.info(
            "Merge status for pull request %s: can_merge=%s resolved=%d/%d critical=%d",
            pull_request_id,
            verdict.can_merge,
            verdict.resolved_comments,
            verdict.total_comments,
            verdict.critical_issues,
        )
        return status

    async def get_merge_status(self, pull_request_id: str) -> MergeStatus:
        """Get the persisted aggregate.

        A missing row means the pull request has not been assessed yet, which
        is not the same as being mergeable.

        Raises:
            NotFoundError: If no aggregate has been written for the pull request.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(MergeStatus).where(MergeStatus.pull_request_id == pull_request_id)
            )
            status = result.scalar_one_or_none()

        if status is None:
            raise NotFoundError(f"Pull request {pull_request_id} has not been assessed yet")
        return status

    async def check_merge_eligibility(self, pull_request_id: str) -> MergeStatus:
        """Recompute the aggregate on demand and return it.

        Also repairs an aggregate left stale by an earlier storage failure.

        Raises:
            NotFoundError: If the pull request does not exist or has no review.
        """
        async with self.db.session() as session:
            if await session.get(PullRequest, pull_request_id) is None:
                raise NotFoundError(f"Pull request {pull_request_id} not found")

            result = await session.execute(
                select(func.count(AiReview.id)).where(AiReview.pull_request_id == pull_request_id)
            )
            if result.scalar_one() == 0:
                raise NotFoundError(f"Pull request {pull_request_id} has not been reviewed yet")

        return await self.recompute(pull_request_id)
