"""Shared fixtures: a temporary database and wired services."""

import pytest

from mergegate.services import (
    CommentService,
    DatabaseService,
    MergeStatusService,
    PullRequestService,
    ReviewService,
)


def make_analysis(*severities, rating="changes_requested", **overrides):
    """Build a raw analysis payload in the model's camelCase format.

    One comment is generated per severity, on consecutive lines of src/app.py.
    """
    payload = {
        "overallRating": rating,
        "codeQualityScore": 72,
        "testCoverage": 64.5,
        "securityIssues": 1,
        "performanceIssues": 0,
        "summary": "Solid change with a few issues.",
        "comments": [
            {
                "filename": "src/app.py",
                "lineNumber": index + 10,
                "commentType": "bug",
                "severity": severity,
                "message": f"Issue {index} ({severity})",
                "suggestion": "Fix it",
            }
            for index, severity in enumerate(severities)
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def db_service(tmp_path):
    db = DatabaseService(tmp_path / "mergegate.db")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def merge_status_service(db_service):
    return MergeStatusService(db_service, max_retries=3, retry_delay=0)


@pytest.fixture
def pull_request_service(db_service):
    return PullRequestService(db_service)


@pytest.fixture
def review_service(db_service, merge_status_service):
    return ReviewService(db_service, merge_status_service)


@pytest.fixture
def comment_service(db_service, merge_status_service):
    return CommentService(db_service, merge_status_service)


@pytest.fixture
async def repository(pull_request_service):
    return await pull_request_service.create_repository(
        full_name="acme/widgets", name="widgets", owner="acme"
    )


@pytest.fixture
async def pull_request(pull_request_service, repository):
    pr = await pull_request_service.create_pull_request(
        repository_id=repository.id,
        number=42,
        title="Add widget cache",
        description="Caches widget lookups",
        author="octocat",
        base_branch="main",
        head_branch="feature/cache",
    )
    await pull_request_service.add_file(
        pr.id,
        filename="src/app.py",
        status="modified",
        additions=12,
        deletions=3,
        patch="@@ -1,3 +1,12 @@\n+cache = {}\n",
    )
    return pr
