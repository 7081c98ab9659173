"""Tests for the comment resolution workflow."""

import asyncio

import pytest

from mergegate.errors import ConflictError, NotFoundError, ReviewValidationError

from conftest import make_analysis


@pytest.fixture
async def reviewed(review_service, pull_request):
    """A pull request with one low, one medium and one high comment."""
    return await review_service.ingest_review(
        pull_request.id, make_analysis("low", "medium", "high")
    )


def by_severity(result, severity):
    return next(c for c in result.comments if c.severity == severity)


class TestResolveComment:
    """Test resolving and dismissing comments."""

    async def test_resolving_blocking_comment_keeps_merge_blocked(
        self, comment_service, reviewed
    ):
        """Test that resolving the high comment still leaves open comments blocking."""
        status = await comment_service.resolve_comment(by_severity(reviewed, "high").id, "alice")

        assert status.can_merge is False
        assert status.critical_issues == 0
        assert status.resolved_comments == 1
        assert status.total_comments == 3
        assert status.blocked_reason == "2 unresolved comments need to be addressed"

    async def test_settling_every_comment_allows_merge(self, comment_service, reviewed):
        """Test that resolving one and dismissing the rest unblocks the merge."""
        await comment_service.resolve_comment(by_severity(reviewed, "high").id, "alice")
        await comment_service.dismiss_comment(
            by_severity(reviewed, "low").id, "alice", "Style preference"
        )
        status = await comment_service.dismiss_comment(
            by_severity(reviewed, "medium").id, "bob", "Covered by follow-up ticket"
        )

        assert status.resolved_comments == 3
        assert status.can_merge is True
        assert status.blocked_reason is None
        assert status.critical_issues == 0

    async def test_resolution_fields_recorded(self, comment_service, reviewed):
        """Test that the acting user, time and note are stored on the comment."""
        comment_id = by_severity(reviewed, "medium").id

        await comment_service.resolve_comment(comment_id, " alice ", "  Fixed in abc123  ")
        comment = await comment_service.get_comment(comment_id)

        assert comment.status == "resolved"
        assert comment.resolved_by == "alice"
        assert comment.resolved_at is not None
        assert comment.resolution_note == "Fixed in abc123"

    async def test_resolve_without_note(self, comment_service, reviewed):
        """Test that a resolution note is optional."""
        comment_id = by_severity(reviewed, "low").id

        await comment_service.resolve_comment(comment_id, "alice")
        comment = await comment_service.get_comment(comment_id)

        assert comment.resolution_note is None

    @pytest.mark.parametrize("note", [None, "", "   "])
    async def test_dismiss_requires_note(self, comment_service, merge_status_service, reviewed, note):
        """Test that dismissing without a reason is rejected and changes nothing."""
        comment_id = by_severity(reviewed, "low").id

        with pytest.raises(ReviewValidationError):
            await comment_service.dismiss_comment(comment_id, "alice", note)

        comment = await comment_service.get_comment(comment_id)
        assert comment.status == "open"
        status = await merge_status_service.get_merge_status(reviewed.review.pull_request_id)
        assert status.resolved_comments == 0

    async def test_user_required(self, comment_service, reviewed):
        """Test that an anonymous resolution is rejected."""
        with pytest.raises(ReviewValidationError):
            await comment_service.resolve_comment(by_severity(reviewed, "low").id, "  ")

    async def test_resolve_twice_conflicts(self, comment_service, merge_status_service, reviewed):
        """Test that a settled comment cannot be resolved again."""
        comment_id = by_severity(reviewed, "high").id
        await comment_service.resolve_comment(comment_id, "alice", "first")
        before = await merge_status_service.get_merge_status(reviewed.review.pull_request_id)

        with pytest.raises(ConflictError, match="already resolved"):
            await comment_service.resolve_comment(comment_id, "bob", "second")

        after = await merge_status_service.get_merge_status(reviewed.review.pull_request_id)
        comment = await comment_service.get_comment(comment_id)
        assert comment.resolved_by == "alice"
        assert comment.resolution_note == "first"
        assert after.resolved_comments == before.resolved_comments == 1
        assert after.last_checked == before.last_checked

    async def test_dismiss_after_resolve_conflicts(self, comment_service, reviewed):
        """Test that a resolved comment cannot be dismissed."""
        comment_id = by_severity(reviewed, "low").id
        await comment_service.resolve_comment(comment_id, "alice")

        with pytest.raises(ConflictError):
            await comment_service.dismiss_comment(comment_id, "alice", "Not needed")

    async def test_unknown_comment(self, comment_service, reviewed):
        """Test resolving a comment that does not exist."""
        with pytest.raises(NotFoundError):
            await comment_service.resolve_comment("missing", "alice")
        with pytest.raises(NotFoundError):
            await comment_service.dismiss_comment("missing", "alice", "reason")

    async def test_unresolved_comments(self, comment_service, reviewed):
        """Test listing only open comments of a pull request."""
        await comment_service.resolve_comment(by_severity(reviewed, "medium").id, "alice")

        unresolved = await comment_service.get_unresolved_comments(reviewed.review.pull_request_id)

        assert [c.severity for c in unresolved] == ["low", "high"]


class TestConcurrentResolution:
    """Test that concurrent writers leave a consistent aggregate."""

    async def test_parallel_resolutions(self, comment_service, merge_status_service, reviewed):
        """Test resolving every comment at once."""
        await asyncio.gather(
            *(comment_service.resolve_comment(c.id, f"user-{i}") for i, c in enumerate(reviewed.comments))
        )

        status = await merge_status_service.get_merge_status(reviewed.review.pull_request_id)
        assert status.resolved_comments == 3
        assert status.can_merge is True

    async def test_parallel_resolution_of_same_comment(self, comment_service, reviewed):
        """Test that exactly one of two racing resolutions wins."""
        comment_id = by_severity(reviewed, "high").id

        results = await asyncio.gather(
            comment_service.resolve_comment(comment_id, "alice"),
            comment_service.dismiss_comment(comment_id, "bob", "Duplicate"),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(conflicts) == 1
        assert len(results) - len(conflicts) == 1

    async def test_resolution_during_ingestion(
        self, review_service, comment_service, merge_status_service, reviewed
    ):
        """Test a resolution racing a new review for the same pull request."""
        pull_request_id = reviewed.review.pull_request_id

        await asyncio.gather(
            comment_service.resolve_comment(by_severity(reviewed, "low").id, "alice"),
            review_service.ingest_review(pull_request_id, make_analysis("medium", "critical")),
        )

        status = await merge_status_service.get_merge_status(pull_request_id)
        assert status.total_comments == 5
        assert status.resolved_comments == 1
        assert status.critical_issues == 2
        assert status.can_merge is False
