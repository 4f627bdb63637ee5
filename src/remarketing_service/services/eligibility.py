"""Follow-up eligibility engine.

Decides which abandoned carts are due for another contact. The decision is
recomputed on every pass from persisted history only: the number of outreach
records for a cart and the latest of their sent_at timestamps. Failed
deliveries count exactly like successful ones.

Backoff schedule (prior records -> required quiet period):
    0 -> immediately
    1 -> 24 hours after the last contact
    2 -> 3 days after the last contact
    3+ -> never again
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog
from sqlalchemy import and_, false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarketing_service.exceptions import PersistenceError
from remarketing_service.infrastructure.database.models import Cart, Customer, OutreachRecord
from remarketing_service.services.ports import CustomerProfile, DueCart
from remarketing_service.services.tiers import classify
from shared.constants import (
    FOLLOW_UP_BACKOFF,
    FOLLOW_UP_BATCH_SIZE,
    FOLLOW_UP_LOOKBACK_DAYS,
    MAX_CONTACTS_PER_CART,
)

logger = structlog.get_logger()


class FollowUpState(str, Enum):
    """Where a cart sits in the backoff schedule at a given instant."""

    NOT_YET_DUE = "not_yet_due"
    DUE = "due"
    EXHAUSTED = "exhausted"


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def follow_up_state(
    outreach_count: int, last_sent_at: datetime | None, now: datetime
) -> FollowUpState:
    """Place a cart in the schedule from its outreach count and latest contact."""
    if outreach_count >= MAX_CONTACTS_PER_CART:
        return FollowUpState.EXHAUSTED

    quiet_period = FOLLOW_UP_BACKOFF[outreach_count]
    if outreach_count == 0 or last_sent_at is None:
        return FollowUpState.DUE

    if as_utc(last_sent_at) < as_utc(now) - quiet_period:
        return FollowUpState.DUE
    return FollowUpState.NOT_YET_DUE


def is_due(outreach_count: int, last_sent_at: datetime | None, now: datetime) -> bool:
    return follow_up_state(outreach_count, last_sent_at, now) is FollowUpState.DUE


class FollowUpEligibilityEngine:
    """Selects carts due for a follow-up contact."""

    def __init__(
        self,
        session: AsyncSession,
        lookback_days: int = FOLLOW_UP_LOOKBACK_DAYS,
        batch_size: int = FOLLOW_UP_BATCH_SIZE,
    ):
        self.session = session
        self.lookback = timedelta(days=lookback_days)
        self.batch_size = batch_size

    @staticmethod
    def _backoff_clause(outreach_count, last_sent_at, now: datetime):
        """SQL form of ``is_due`` built from the same schedule table."""
        branches = []
        for prior, quiet_period in FOLLOW_UP_BACKOFF.items():
            if prior == 0:
                branches.append(outreach_count == 0)
            else:
                branches.append(
                    and_(outreach_count == prior, last_sent_at < now - quiet_period)
                )
        return or_(*branches) if branches else false()

    async def select_due(
        self,
        now: datetime | None = None,
        window: timedelta | None = None,
        limit: int | None = None,
    ) -> list[DueCart]:
        """
        Select carts due for contact, most recently abandoned first.

        Args:
            now: Evaluation instant, defaults to the current time
            window: Retention lookback, defaults to the configured days
            limit: Maximum carts returned, defaults to the configured batch size

        Returns:
            Ordered list of due carts with their outreach history

        Raises:
            PersistenceError: the read failed; no partial result is returned
        """
        now = as_utc(now or datetime.now(timezone.utc))
        window = window or self.lookback
        limit = limit or self.batch_size

        outreach_count = func.count(OutreachRecord.id)
        last_sent_at = func.max(OutreachRecord.sent_at)

        query = (
            select(Cart, Customer, outreach_count.label("outreach_count"), last_sent_at.label("last_sent_at"))
            .join(Customer, Cart.customer_id == Customer.id)
            .outerjoin(OutreachRecord, OutreachRecord.cart_id == Cart.id)
            .where(
                Cart.abandoned_at > now - window,
                Cart.recovered_at.is_(None),
            )
            .group_by(Cart.id, Customer.id)
            .having(self._backoff_clause(outreach_count, last_sent_at, now))
            .order_by(Cart.abandoned_at.desc(), Cart.id.desc())
            .limit(limit)
        )

        try:
            rows = (await self.session.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("Eligibility selection failed", error=str(e))
            raise PersistenceError("failed to select carts due for follow-up") from e

        due = [
            DueCart(
                cart_id=cart.id,
                checkout_id=cart.checkout_id,
                customer_id=customer.id,
                total=cart.total,
                currency=cart.currency,
                abandoned_at=as_utc(cart.abandoned_at),
                tier=classify(cart.total),
                outreach_count=count,
                last_sent_at=as_utc(last) if last is not None else None,
                profile=CustomerProfile(
                    email=customer.email,
                    phone=customer.phone,
                    first_name=customer.first_name,
                    last_name=customer.last_name,
                    city=customer.city,
                    province=customer.province,
                    country=customer.country,
                ),
            )
            for cart, customer, count, last in rows
        ]

        logger.info("Carts due for follow-up", count=len(due), limit=limit)
        return due
