"""Service for repositories, pull requests and their changed files."""

import logging
from typing import List, Optional

from sqlalchemy import select

from ..errors import NotFoundError
from ..orm.insights import CodeContext, LearningPattern, ReviewInsight
from ..orm.pull_request import PrFile, PullRequest
from ..orm.repository import Repository
from .database import DatabaseService

logger = logging.getLogger(__name__)


class PullRequestService:
    """CRUD access to repositories, pull requests and review side records."""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def create_repository(
        self,
        full_name: str,
        name: str,
        owner: str,
        description: Optional[str] = None,
        default_branch: str = "main",
        github_id: Optional[int] = None,
        is_private: bool = False,
    ) -> Repository:
        """Create a repository record."""
        async with self.db.session() as session:
            repository = Repository(
                full_name=full_name,
                name=name,
                owner=owner,
                description=description,
                default_branch=default_branch,
                github_id=github_id,
                is_private=is_private,
            )
            session.add(repository)
            await session.commit()
            await session.refresh(repository)

        logger.info("Created repository %s (%s)", repository.full_name, repository.id)
        return repository

    async def list_repositories(self) -> List[Repository]:
        """List repositories, most recently updated first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Repository).order_by(Repository.updated_at.desc())
            )
            return list(result.scalars().all())

    async def get_repository(self, repository_id: str) -> Repository:
        async with self.db.session() as session:
            repository = await session.get(Repository, repository_id)
        if repository is None:
            raise NotFoundError(f"Repository {repository_id} not found")
        return repository

    async def create_pull_request(
        self,
        repository_id: str,
        number: int,
        title: str,
        author: str,
        base_branch: str,
        head_branch: str,
        description: Optional[str] = None,
        additions: int = 0,
        deletions: int = 0,
        changed_files: int = 0,
        github_id: Optional[int] = None,
    ) -> PullRequest:
        """Create a pull request in an existing repository.

        Raises:
            NotFoundError: If the repository does not exist.
        """
        async with self.db.session() as session:
            if await session.get(Repository, repository_id) is None:
                raise NotFoundError(f"Repository {repository_id} not found")

            pull_request = PullRequest(
                repository_id=repository_id,
                number=number,
                title=title,
                description=description,
                author=author,
                base_branch=base_branch,
                head_branch=head_branch,
                additions=additions,
                deletions=deletions,
                changed_files=changed_files,
                github_id=github_id,
            )
            session.add(pull_request)
            await session.commit()
            await session.refresh(pull_request)

        logger.info("Created pull request #%d (%s)", pull_request.number, pull_request.id)
        return pull_request

    async def list_pull_requests(self, repository_id: Optional[str] = None) -> List[PullRequest]:
        """List pull requests, newest first, optionally for one repository."""
        async with self.db.session() as session:
            query = select(PullRequest)
            if repository_id:
                query = query.where(PullRequest.repository_id == repository_id)
            result = await session.execute(query.order_by(PullRequest.created_at.desc()))
            return list(result.scalars().all())

    async def get_pull_request(self, pull_request_id: str) -> PullRequest:
        async with self.db.session() as session:
            pull_request = await session.get(PullRequest, pull_request_id)
        if pull_request is None:
            raise NotFoundError(f"Pull request {pull_request_id} not found")
        return pull_request

    async def add_file(
        self,
        pull_request_id: str,
        filename: str,
        status: str,
        additions: int = 0,
        deletions: int = 0,
        patch: Optional[str] = None,
        previous_filename: Optional[str] = None,
    ) -> PrFile:
        """Attach a changed file to a pull request."""
        async with self.db.session() as session:
            if await session.get(PullRequest, pull_request_id) is None:
                raise NotFoundError(f"Pull request {pull_request_id} not found")

            pr_file = PrFile(
                pull_request_id=pull_request_id,
                filename=filename,
                status=status,
                additions=additions,
                deletions=deletions,
                patch=patch,
                previous_filename=previous_filename,
            )
            session.add(pr_file)
            await session.commit()
            await session.refresh(pr_file)
            return pr_file

    async def list_files(self, pull_request_id: str) -> List[PrFile]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PrFile)
                .where(PrFile.pull_request_id == pull_request_id)
                .order_by(PrFile.filename)
            )
            return list(result.scalars().all())

    async def get_review_insights(self, pull_request_id: str) -> List[ReviewInsight]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ReviewInsight)
                .where(ReviewInsight.pull_request_id == pull_request_id)
                .order_by(ReviewInsight.created_at.desc())
            )
            return list(result.scalars().all())

    async def get_code_context(self, pull_request_id: str) -> List[CodeContext]:
        async with self.db.session() as session:
            result = await session.execute(
                select(CodeContext).where(CodeContext.pull_request_id == pull_request_id)
            )
            return list(result.scalars().all())

    async def get_learning_patterns(self, repository_id: str) -> List[LearningPattern]:
        """Get patterns learned for a repository, most confident first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(LearningPattern)
                .where(LearningPattern.repository_id == repository_id)
                .order_by(LearningPattern.confidence.desc())
            )
            return list(result.scalars().all())
