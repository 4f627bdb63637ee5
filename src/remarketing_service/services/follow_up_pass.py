"""One scheduled follow-up pass: select due carts, contact each in turn."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remarketing_service.config import Settings
from remarketing_service.infrastructure.collaborators import Collaborators
from remarketing_service.infrastructure.database.models import DeliveryStatus
from remarketing_service.infrastructure.redis import BatchLock
from remarketing_service.services.eligibility import FollowUpEligibilityEngine
from remarketing_service.services.orchestrator import OutreachOrchestrator

logger = structlog.get_logger()


@dataclass
class PassSummary:
    """What a pass did.

    ``skipped`` counts carts whose processing raised or whose attempt another
    worker had already claimed.
    """

    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    locked: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def message(self) -> str:
        if self.locked:
            return "Another follow-up pass is running, skipped"
        return f"Processed {self.processed} abandoned carts"

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "message": self.message}


async def run_follow_up_pass(
    session_factory: async_sessionmaker[AsyncSession],
    collaborators: Collaborators,
    settings: Settings,
    now: datetime | None = None,
    lock: BatchLock | None = None,
) -> PassSummary:
    """
    Run one follow-up pass.

    Carts are processed sequentially; an exception while processing one cart
    is logged and the pass moves on. A failed selection aborts the pass.

    Raises:
        PersistenceError: the eligibility selection failed
    """
    if lock is not None and not await lock.acquire():
        logger.warning("Follow-up pass already running", key=lock.key)
        return PassSummary(locked=True)

    summary = PassSummary()
    structlog.contextvars.bind_contextvars(pass_id=uuid4().hex[:12])
    try:
        logger.info("Follow-up pass started")
        async with session_factory() as session:
            engine = FollowUpEligibilityEngine(
                session,
                lookback_days=settings.follow_up_lookback_days,
                batch_size=settings.follow_up_batch_size,
            )
            due_carts = await engine.select_due(now)
            summary.processed = len(due_carts)

            orchestrator = OutreachOrchestrator(
                session,
                collaborators.generator,
                collaborators.discounts,
                collaborators.mailer,
                settings,
            )
            for cart in due_carts:
                try:
                    outcome = await orchestrator.process(cart)
                except Exception as e:
                    await session.rollback()
                    summary.skipped += 1
                    logger.exception(
                        "Error processing cart",
                        cart_id=cart.cart_id,
                        checkout_id=cart.checkout_id,
                        error=str(e),
                    )
                    continue

                if outcome is None:
                    summary.skipped += 1
                elif outcome.status is DeliveryStatus.SENT:
                    summary.sent += 1
                else:
                    summary.failed += 1

        logger.info("Follow-up pass finished", **summary.to_dict())
        return summary
    finally:
        structlog.contextvars.unbind_contextvars("pass_id")
        if lock is not None:
            await lock.release()
