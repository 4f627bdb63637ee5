"""Cart ingestion.

Records an abandonment event against a resolved customer identity. The
customer row is upserted on its fingerprint and the cart row is keyed by the
upstream checkout id, so replaying the same event never creates a second cart.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remarketing_service.exceptions import PersistenceError, ValidationError
from remarketing_service.infrastructure.database.connection import dialect_insert
from remarketing_service.infrastructure.database.models import Cart, Customer
from remarketing_service.services.fingerprint import resolve
from remarketing_service.services.ports import CustomerProfile, DueCart
from remarketing_service.services.tiers import Tier, classify

logger = structlog.get_logger()

# Refreshed on every sighting; the fingerprint itself is never rewritten
CONTACT_FIELDS = (
    "email",
    "phone",
    "street_address",
    "first_name",
    "last_name",
    "city",
    "province",
    "country",
    "zip",
)


@dataclass
class CustomerContact:
    """Partial, possibly noisy contact data from an abandonment event."""

    email: str | None = None
    phone: str | None = None
    street_address: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None
    zip: str | None = None

    @property
    def fingerprint(self) -> str:
        return resolve(self.email, self.phone, self.street_address)

    def to_profile(self) -> CustomerProfile:
        return CustomerProfile(
            email=self.email or "",
            phone=self.phone,
            first_name=self.first_name,
            last_name=self.last_name,
            city=self.city,
            province=self.province,
            country=self.country,
        )


@dataclass
class IngestionResult:
    """Outcome of one ingestion. ``created`` is False for a replayed checkout."""

    customer_id: int
    cart_id: int
    checkout_id: str
    tier: Tier
    total: Decimal
    currency: str
    abandoned_at: datetime
    created: bool
    profile: CustomerProfile

    def as_due_cart(self) -> DueCart:
        """A freshly ingested cart has no outreach history and is due now."""
        return DueCart(
            cart_id=self.cart_id,
            checkout_id=self.checkout_id,
            customer_id=self.customer_id,
            total=self.total,
            currency=self.currency,
            abandoned_at=self.abandoned_at,
            tier=self.tier,
            profile=self.profile,
        )


def parse_total(value: Any) -> Decimal:
    """Parse an upstream price. Missing means zero; garbage is rejected."""
    if value is None or value == "":
        return Decimal("0")
    try:
        total = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"total_price is not a number: {value!r}") from e
    if not total.is_finite() or total < 0:
        raise ValidationError(f"total_price must be a non-negative number: {value!r}")
    return total.quantize(Decimal("0.01"))


class CartIngestionService:
    """Service for recording abandonment events."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ingest(
        self,
        checkout_id: str | int | None,
        contact: CustomerContact,
        total: Any,
        currency: str | None = "USD",
        now: datetime | None = None,
    ) -> IngestionResult:
        """
        Record an abandoned checkout.

        Args:
            checkout_id: Upstream checkout identifier (unique per cart)
            contact: Contact fields used for identity and personalisation
            total: Cart total, numeric or numeric string
            currency: ISO currency code, defaults to USD
            now: Abandonment timestamp, defaults to the current time

        Returns:
            IngestionResult with resolved identifiers and tier

        Raises:
            ValidationError: checkout id or email missing, total malformed
            PersistenceError: the store rejected or failed the writes
        """
        checkout_id = str(checkout_id).strip() if checkout_id is not None else ""
        if not checkout_id:
            raise ValidationError("checkout id is required")
        if not contact.email:
            raise ValidationError("email is required")

        cart_total = parse_total(total)
        currency = (currency or "USD").strip().upper()
        if len(currency) != 3:
            raise ValidationError(f"currency must be a 3-letter code: {currency!r}")
        now = now or datetime.now(timezone.utc)

        try:
            customer_id = await self._upsert_customer(contact, now)
            cart_id = await self._insert_cart(checkout_id, customer_id, cart_total, currency, now)
            created = cart_id is not None

            if not created:
                existing = (
                    await self.session.execute(
                        select(Cart.id, Cart.customer_id, Cart.total, Cart.currency, Cart.abandoned_at)
                        .where(Cart.checkout_id == checkout_id)
                    )
                ).one()
                cart_id, customer_id = existing.id, existing.customer_id
                cart_total, currency = Decimal(existing.total), existing.currency
                now = existing.abandoned_at

            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Cart ingestion failed", checkout_id=checkout_id, error=str(e))
            raise PersistenceError(f"failed to record checkout {checkout_id}") from e

        tier = classify(cart_total)
        if created:
            logger.info(
                "Cart abandonment recorded",
                checkout_id=checkout_id,
                cart_id=cart_id,
                customer_id=customer_id,
                total=str(cart_total),
                tier=tier.value,
            )
        else:
            logger.info("Duplicate checkout ignored", checkout_id=checkout_id, cart_id=cart_id)

        return IngestionResult(
            customer_id=customer_id,
            cart_id=cart_id,
            checkout_id=checkout_id,
            tier=tier,
            total=cart_total,
            currency=currency,
            abandoned_at=now,
            created=created,
            profile=contact.to_profile(),
        )

    async def _upsert_customer(self, contact: CustomerContact, now: datetime) -> int:
        fields = {name: getattr(contact, name) or None for name in CONTACT_FIELDS}
        stmt = dialect_insert(self.session, Customer).values(
            fingerprint=contact.fingerprint, updated_at=now, **fields
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Customer.fingerprint],
            set_={
                **{name: getattr(stmt.excluded, name) for name in CONTACT_FIELDS},
                "updated_at": now,
            },
        ).returning(Customer.id)
        return (await self.session.execute(stmt)).scalar_one()

    async def _insert_cart(
        self,
        checkout_id: str,
        customer_id: int,
        total: Decimal,
        currency: str,
        now: datetime,
    ) -> int | None:
        stmt = (
            dialect_insert(self.session, Cart)
            .values(
                checkout_id=checkout_id,
                customer_id=customer_id,
                total=total,
                currency=currency,
                abandoned_at=now,
            )
            .on_conflict_do_nothing(index_elements=[Cart.checkout_id])
            .returning(Cart.id)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()
