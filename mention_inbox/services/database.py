"""Database connection and session management."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..orm.base import Base

logger = logging.getLogger(__name__)


class DatabaseService:
    """Manages database connection and session lifecycle."""

    def __init__(
        self,
        database_path: str | Path | None = None,
        url: Optional[str] = None,
        echo: bool = False,
    ):
        if url is None:
            if database_path is None:
                raise ValueError("Either database_path or url is required")
            path = Path(database_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite+aiosqlite:///{path}"

        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
        )

        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    async def initialize(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations."""
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close database engine."""
        await self.engine.dispose()


# Global database service instance
db_service: DatabaseService | None = None


def get_db_service() -> DatabaseService:
    """Get the global database service instance."""
    if db_service is None:
        raise RuntimeError("Database service not initialized")
    return db_service


async def init_db_service(
    database_path: str | Path | None = None,
    url: Optional[str] = None,
    echo: bool = False,
) -> DatabaseService:
    """Initialize the global database service."""
    global db_service
    db_service = DatabaseService(database_path, url=url, echo=echo)
    await db_service.initialize()
    logger.info("Database ready at %s", db_service.engine.url.render_as_string(hide_password=True))
    return db_service


async def close_db_service() -> None:
    """Dispose of the global database service, if any."""
    global db_service
    if db_service is not None:
        await db_service.close()
        db_service = None
