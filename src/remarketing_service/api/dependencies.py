"""FastAPI dependencies resolving the handles built in the app lifespan."""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remarketing_service.config import Settings, get_settings
from remarketing_service.infrastructure.collaborators import Collaborators
from remarketing_service.infrastructure.redis import BatchLock
from shared.constants import FOLLOW_UP_LOCK_KEY


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


async def get_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to get database session."""
    async with factory() as session:
        yield session


def get_collaborators(request: Request) -> Collaborators:
    return request.app.state.collaborators


def get_batch_lock(request: Request, settings: Settings = Depends(get_settings)) -> BatchLock:
    return BatchLock(
        getattr(request.app.state, "redis", None),
        FOLLOW_UP_LOCK_KEY,
        ttl_seconds=settings.follow_up_lock_ttl_seconds,
    )
