"""Outreach orchestration.

For one due cart: generate content, claim the next attempt slot as a pending
outreach record, optionally issue a discount, compose and deliver the email,
then settle the record as ``sent`` or ``failed``. Generation failures write
nothing so the cart stays due. Once a slot is claimed every outcome is
recorded and counts toward the backoff schedule; a worker that loses the
claim sends nothing.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import Awaitable, Callable, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarketing_service.config import Settings
from remarketing_service.exceptions import (
    GenerationError,
    PersistenceError,
)
from remarketing_service.infrastructure.database.connection import dialect_insert
from remarketing_service.infrastructure.database.models import DeliveryStatus, OutreachRecord
from remarketing_service.services.ports import (
    DiscountIssuer,
    DueCart,
    GeneratedMessage,
    Mailer,
    MessageGenerator,
    OutgoingEmail,
)
from remarketing_service.services.tiers import TierPolicy, policy_for

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class OutreachOutcome:
    """Result of processing one cart."""

    cart_id: int
    record_id: int
    status: DeliveryStatus
    provider_message_id: str | None
    discount_code: str | None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutreachOrchestrator:
    """Drives one outreach attempt per cart."""

    def __init__(
        self,
        session: AsyncSession,
        generator: MessageGenerator,
        discounts: DiscountIssuer,
        mailer: Mailer,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.generator = generator
        self.discounts = discounts
        self.mailer = mailer
        self.settings = settings
        self.clock = clock
        self.timeout = settings.collaborator_timeout_seconds

    async def _call(self, operation: Awaitable[T]) -> T:
        """Bound any collaborator call by the configured timeout."""
        return await asyncio.wait_for(operation, timeout=self.timeout)

    def compose(
        self, message: GeneratedMessage, policy: TierPolicy, discount_code: str | None
    ) -> str:
        """Generated body + incentive (if issued) + fixed footer."""
        store = escape(self.settings.store_name)
        body = message.body
        if discount_code:
            body += (
                f"<p><strong>Special Offer:</strong> Use discount code "
                f"<code>{escape(discount_code)}</code> to save {policy.discount_percent}% on your order!</p>"
            )
        body += (
            "<hr>"
            '<p style="font-size: 12px; color: #666;">'
            f"{store}<br>"
            "This email was sent regarding items in your shopping cart. "
            f'<a href="{escape(self.settings.store_cart_url)}">Complete your order</a>'
            "</p>"
        )
        return body

    async def _claim(self, cart: DueCart, recipient: str, message: GeneratedMessage) -> int | None:
        """
        Take the next attempt slot for ``cart`` as a pending record.

        The slot number comes from the history ``cart`` was selected with, so a
        worker acting on a stale view loses the insert and gets None.
        """
        stmt = (
            dialect_insert(self.session, OutreachRecord)
            .values(
                cart_id=cart.cart_id,
                attempt=cart.outreach_count + 1,
                recipient_email=recipient,
                subject=message.subject,
                body=message.body,
                status=DeliveryStatus.PENDING,
                sent_at=self.clock(),
            )
            .on_conflict_do_nothing(
                index_elements=[OutreachRecord.cart_id, OutreachRecord.attempt]
            )
            .returning(OutreachRecord.id)
        )
        try:
            record_id = (await self.session.execute(stmt)).scalar_one_or_none()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(f"failed to claim outreach slot for cart {cart.cart_id}") from e
        return record_id

    async def process(self, cart: DueCart) -> OutreachOutcome | None:
        """
        Run one outreach attempt for ``cart``.

        Returns None when another worker already claimed this attempt.

        Raises:
            GenerationError: content could not be generated; nothing recorded
            PersistenceError: the outreach record could not be written
        """
        log = logger.bind(cart_id=cart.cart_id, checkout_id=cart.checkout_id, tier=cart.tier.value)
        policy = policy_for(cart.tier)

        try:
            message = await self._call(self.generator.generate(cart))
        except TimeoutError as e:
            raise GenerationError("message generation timed out") from e

        record_id = await self._claim(cart, cart.profile.email, message)
        if record_id is None:
            log.info("Attempt already claimed by another worker", attempt=cart.outreach_count + 1)
            return None

        discount_code = None
        if policy.offers_discount:
            try:
                discount_code = await self._call(self.discounts.issue(cart.tier, cart.checkout_id))
            except Exception as e:
                log.warning("Discount issuance failed, continuing without code", error=str(e))

        email = OutgoingEmail(
            recipient=cart.profile.email,
            recipient_name=cart.profile.display_name,
            subject=message.subject,
            html_body=self.compose(message, policy, discount_code),
            cc_address=self.settings.sales_cc_address,
            cc_name=self.settings.sales_cc_name,
            importance=policy.importance,
        )

        provider_message_id = None
        try:
            receipt = await self._call(self.mailer.send(email))
            status = DeliveryStatus.SENT
            provider_message_id = receipt.provider_message_id
        except Exception as e:
            # Any failure once the slot is claimed is recorded, never retried early
            status = DeliveryStatus.FAILED
            log.error(
                "Email delivery failed",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )

        try:
            await self.session.execute(
                update(OutreachRecord)
                .where(OutreachRecord.id == record_id)
                .values(
                    body=email.html_body,
                    status=status,
                    provider_message_id=provider_message_id,
                    discount_code=discount_code,
                    sent_at=self.clock(),
                )
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            log.error("Outreach record write failed", status=status.value, error=str(e))
            raise PersistenceError(f"failed to record outreach for cart {cart.cart_id}") from e

        log.info(
            "Outreach recorded",
            status=status.value,
            attempt=cart.outreach_count + 1,
            discount_code=discount_code,
            message_id=provider_message_id,
        )
        return OutreachOutcome(
            cart_id=cart.cart_id,
            record_id=record_id,
            status=status,
            provider_message_id=provider_message_id,
            discount_code=discount_code,
        )
