"""Database engine and session management."""
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from facematch.core.config import settings
from facematch.core.logging import get_logger
from facematch.infrastructure.database.models import Base

logger = get_logger(__name__)


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine.

    Pool sizing applies to server databases only; SQLite engines use
    SQLAlchemy's default pool for the URL.
    """
    url = database_url or settings.database_url
    engine_args = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        engine_args.update(
            pool_size=settings.POSTGRES_POOL_SIZE,
            max_overflow=settings.POSTGRES_MAX_OVERFLOW,
            pool_timeout=settings.POSTGRES_POOL_TIMEOUT
        )
    logger.debug("Creating database engine", dialect=url.split(":", 1)[0])
    return create_async_engine(url, **engine_args)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory.

    Example:
        ```python
        session_factory = create_session_factory(create_engine())
        async with session_factory() as session:
            await session.execute(query)
        ```
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables."""
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
