"""Database engine and session management for review storage."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..orm.base import Base

logger = logging.getLogger(__name__)

# Milliseconds SQLite waits on a locked database before raising OperationalError
SQLITE_BUSY_TIMEOUT_MS = 5000


def _configure_sqlite(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


class DatabaseService:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, database_path: str | Path | None = None, url: Optional[str] = None):
        """Initialize database service.

        Args:
            database_path: SQLite file, created along with its directory if missing
            url: Full SQLAlchemy async URL; takes precedence over database_path
        """
        if url is None:
            if database_path is None:
                raise ValueError("Either database_path or url is required")
            self.database_path = Path(database_path).expanduser()
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite+aiosqlite:///{self.database_path}"
        else:
            self.database_path = None

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=False, pool_pre_ping=True)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _configure_sqlite)

        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def initialize(self):
        """Create tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Schema ready on %s", self.engine.url.render_as_string(hide_password=True))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope; rolled back if the block raises."""
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()


# Process-wide instance used by the CLI
db_service: DatabaseService | None = None


def get_db_service() -> DatabaseService:
    """Get the process-wide database service."""
    if db_service is None:
        raise RuntimeError("Database service not initialized")
    return db_service


async def init_db_service(
    database_path: str | Path | None = None, url: Optional[str] = None
) -> DatabaseService:
    """Create the process-wide database service and its tables."""
    global db_service
    db_service = DatabaseService(database_path, url=url)
    await db_service.initialize()
    return db_service
