"""Scheduled follow-up pass task."""

import asyncio

import structlog
from celery import shared_task

from remarketing_service.config import Settings, get_settings
from remarketing_service.exceptions import PersistenceError
from remarketing_service.infrastructure.collaborators import open_collaborators
from remarketing_service.infrastructure.database.connection import database
from remarketing_service.infrastructure.redis import BatchLock, connect_redis
from remarketing_service.services.follow_up_pass import PassSummary, run_follow_up_pass as run_pass
from shared.constants import FOLLOW_UP_LOCK_KEY

logger = structlog.get_logger()


async def execute_follow_up_pass(settings: Settings) -> PassSummary:
    """
    Run one pass with handles scoped to it.

    The engine, HTTP client and Redis connection are opened here and closed
    before returning, so nothing outlives the pass.
    """
    redis_client = await connect_redis(settings)
    try:
        lock = BatchLock(
            redis_client,
            FOLLOW_UP_LOCK_KEY,
            ttl_seconds=settings.follow_up_lock_ttl_seconds,
        )
        async with database(settings) as session_factory:
            async with open_collaborators(settings) as collaborators:
                return await run_pass(session_factory, collaborators, settings, lock=lock)
    finally:
        if redis_client is not None:
            await redis_client.aclose()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def run_follow_up_pass(self) -> dict:
    """
    Select abandoned carts due for contact and send their next follow-up.

    This task runs periodically to:
    1. Find unrecovered carts from the lookback window that are due per backoff
    2. Generate tiered content, issue a discount for LOW/MEDIUM carts
    3. Send the email and record the outcome for each cart

    Returns:
        dict: Summary of the pass
    """
    logger.info("Running follow-up pass", task_id=self.request.id)

    try:
        summary = asyncio.run(execute_follow_up_pass(get_settings()))
    except PersistenceError as e:
        logger.error("Follow-up pass aborted", error=str(e))
        raise self.retry(exc=e)

    return summary.to_dict()
