"""Manual trigger for the follow-up pass."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remarketing_service.api.dependencies import (
    get_batch_lock,
    get_collaborators,
    get_session_factory,
)
from remarketing_service.config import Settings, get_settings
from remarketing_service.infrastructure.collaborators import Collaborators
from remarketing_service.infrastructure.redis import BatchLock
from remarketing_service.services.follow_up_pass import run_follow_up_pass

router = APIRouter()


class FollowUpPassResponse(BaseModel):
    """Summary of one follow-up pass."""

    success: bool = True
    processed: int
    sent: int
    failed: int
    skipped: int
    locked: bool
    timestamp: str
    message: str


@router.post("/run", response_model=FollowUpPassResponse)
async def trigger_follow_up_pass(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    collaborators: Collaborators = Depends(get_collaborators),
    lock: BatchLock = Depends(get_batch_lock),
    settings: Settings = Depends(get_settings),
) -> FollowUpPassResponse:
    """
    Run one follow-up pass now.

    Same work as the scheduled Celery task: select carts due for contact and
    process them one by one. Returns immediately with ``locked`` set if a pass
    is already running.
    """
    summary = await run_follow_up_pass(factory, collaborators, settings, lock=lock)
    return FollowUpPassResponse(**summary.to_dict())
