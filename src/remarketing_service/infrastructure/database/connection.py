"""Database connection management.

Engines and session factories are built explicitly and handed to the
components that need them: the API keeps one pair on ``app.state`` for its
lifetime, each follow-up pass opens and disposes its own.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from remarketing_service.config import Settings


def get_async_engine(settings: Settings) -> AsyncEngine:
    """Create async database engine with connection pooling."""
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle,
    )


def get_async_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def database(settings: Settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Open an engine for the duration of a block and dispose it afterwards."""
    engine = get_async_engine(settings)
    try:
        yield get_async_session_factory(engine)
    finally:
        await engine.dispose()


def dialect_insert(session: AsyncSession, model: type) -> Any:
    """INSERT for the session's dialect, supporting ON CONFLICT clauses."""
    dialect = session.get_bind().dialect.name
    module = sqlite if dialect == "sqlite" else postgresql
    return module.insert(model)
