"""Service for review comments and their resolution workflow."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select

from ..errors import ConflictError, NotFoundError, ReviewValidationError
from ..orm.ai_review import AiReview
from ..orm.merge_status import MergeStatus
from ..orm.review_comment import (
    COMMENT_DISMISSED,
    COMMENT_OPEN,
    COMMENT_RESOLVED,
    ReviewComment,
)
from .database import DatabaseService
from .merge_status_service import MergeStatusService, load_pull_request_comments

logger = logging.getLogger(__name__)


class CommentService:
    """Read review comments and move them out of the open state."""

    def __init__(self, db_service: DatabaseService, merge_status_service: MergeStatusService):
        """Initialize comment service.

        Args:
            db_service: Database service
            merge_status_service: Service that owns the merge status aggregate
        """
        self.db = db_service
        self.merge_status = merge_status_service

    async def get_comment(self, comment_id: str) -> ReviewComment:
        """Get a single comment by id."""
        async with self.db.session() as session:
            comment = await session.get(ReviewComment, comment_id)
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return comment

    async def get_review_comments(self, review_id: str) -> List[ReviewComment]:
        """Get the comments of one review, by line number then input order."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ReviewComment)
                .where(ReviewComment.ai_review_id == review_id)
                .order_by(
                    ReviewComment.line_number.is_(None),
                    ReviewComment.line_number,
                    ReviewComment.position,
                )
            )
            return list(result.scalars().all())

    async def get_unresolved_comments(self, pull_request_id: str) -> List[ReviewComment]:
        """Get open comments across every review of a pull request."""
        async with self.db.session() as session:
            comments = await load_pull_request_comments(
                session, pull_request_id, status=COMMENT_OPEN
            )
            return list(comments)

    async def resolve_comment(
        self, comment_id: str, user_id: str, note: Optional[str] = None
    ) -> MergeStatus:
        """Mark an open comment as resolved and refresh the merge status.

        Args:
            comment_id: Comment to resolve
            user_id: Identity of the acting user
            note: Optional explanation of how the comment was addressed

        Returns:
            The recomputed merge status of the comment's pull request

        Raises:
            NotFoundError: If the comment does not exist
            ConflictError: If the comment is already resolved or dismissed
        """
        return await self._transition(comment_id, user_id, COMMENT_RESOLVED, note)

    async def dismiss_comment(self, comment_id: str, user_id: str, note: Optional[str]) -> MergeStatus:
        """Dismiss an open comment as not applicable and refresh the merge status.

        Args:
            comment_id: Comment to dismiss
            user_id: Identity of the acting user
            note: Reason for dismissing; required

        Returns:
            The recomputed merge status of the comment's pull request

        Raises:
            ReviewValidationError: If the note is missing or blank
            NotFoundError: If the comment does not exist
            ConflictError: If the comment is already resolved or dismissed
        """
        if not note or not note.strip():
            raise ReviewValidationError("A reason is required to dismiss a comment")
        return await self._transition(comment_id, user_id, COMMENT_DISMISSED, note)

    async def _transition(
        self, comment_id: str, user_id: str, new_status: str, note: Optional[str]
    ) -> MergeStatus:
        if not user_id or not user_id.strip():
            raise ReviewValidationError("Acting user identity is required")
        user_id = user_id.strip()
        note = note.strip() if note and note.strip() else None

        pull_request_id = await self._pull_request_id_for(comment_id)

        async with self.merge_status.locks.hold(pull_request_id):
            async with self.db.session() as session:
                result = await session.execute(
                    select(ReviewComment).where(ReviewComment.id == comment_id).with_for_update()
                )
                comment = result.scalar_one_or_none()
                if comment is None:
                    raise NotFoundError(f"Comment {comment_id} not found")
                if comment.status != COMMENT_OPEN:
                    raise ConflictError(f"Comment {comment_id} is already {comment.status}")

                comment.status = new_status
                comment.resolved_by = user_id
                comment.resolved_at = datetime.now(timezone.utc)
                comment.resolution_note = note
                await session.commit()

            logger.info(
                "Comment %s on pull request %s %s by %s", comment_id, pull_request_id, new_status, user_id
            )
            return await self.merge_status.recompute_locked(pull_request_id)

    async def _pull_request_id_for(self, comment_id: str) -> str:
        async with self.db.session() as session:
            result = await session.execute(
                select(AiReview.pull_request_id)
                .join(ReviewComment, ReviewComment.ai_review_id == AiReview.id)
                .where(ReviewComment.id == comment_id)
            )
            pull_request_id = result.scalar_one_or_none()

        if pull_request_id is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return pull_request_id
