"""
Database session management.
Provides the async SQLAlchemy engine, session factory, and lifecycle functions
behind an explicitly constructed handle.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from tubehub.core.config import Settings
from tubehub.database.base import Base


class Database:
    """
    Owns the async engine and session factory for one process.

    Created once at application startup and closed at shutdown. Components
    receive the handle through their constructors.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a handle using the pool settings from configuration."""
        engine_kwargs = {"echo": settings.database_echo}
        if not settings.database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
            )
        return cls(settings.database_url, **engine_kwargs)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session scoped to one logical operation.

        The session is committed on success or rolled back on error.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables (tests and local development only)."""
        # Import models so they register on Base.metadata
        import tubehub.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """
        Close the database engine and cleanup resources.
        Called once at application shutdown.
        """
        await self.engine.dispose()
