"""Database session management for the station directory."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bikeshare_planner.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session.

    Station reads never write, so nothing is committed.
    """
    async with async_session_maker() as session:
        yield session


async def dispose_engine() -> None:
    """Close every pooled connection."""
    await engine.dispose()
