"""SQLAlchemy models for the remarketing system.

These models are stored in the 'remarketing' schema. Customers are keyed by
their identity fingerprint, carts by the upstream checkout id, and outreach
records form an append-only audit log per cart.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Schema for all remarketing tables
SCHEMA = "remarketing"


class Base(DeclarativeBase):
    """Base class for all models."""

    __table_args__ = {"schema": SCHEMA}


# =============================================================================
# Enums
# =============================================================================


class DeliveryStatus(str, PyEnum):
    """Outcome of one outreach attempt."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# =============================================================================
# Customers
# =============================================================================


class Customer(Base):
    """A resolved real-world contact.

    The fingerprint is derived from normalized street address, email domain
    and last four phone digits. Contact fields are refreshed on every sighting;
    the fingerprint never changes.
    """

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fingerprint: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(64))
    street_address: Mapped[Optional[str]] = mapped_column(String(500))

    # Personalisation only, never part of the identity
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(255))
    province: Mapped[Optional[str]] = mapped_column(String(255))
    country: Mapped[Optional[str]] = mapped_column(String(255))
    zip: Mapped[Optional[str]] = mapped_column(String(32))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    carts: Mapped[list["Cart"]] = relationship(back_populates="customer")


# =============================================================================
# Carts
# =============================================================================


class Cart(Base):
    """One checkout abandonment event."""

    __tablename__ = "carts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    checkout_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey(f"{SCHEMA}.customers.id"), nullable=False, index=True
    )

    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    abandoned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Set by an external recovery signal; a recovered cart is never contacted
    recovered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer: Mapped[Customer] = relationship(back_populates="carts")
    outreach_records: Mapped[list["OutreachRecord"]] = relationship(
        back_populates="cart", order_by="OutreachRecord.sent_at"
    )

    __table_args__ = (
        Index("ix_carts_abandoned_at", "abandoned_at"),
        {"schema": SCHEMA},
    )


# =============================================================================
# Outreach Records
# =============================================================================


class OutreachRecord(Base):
    """Audit entry for one attempted contact.

    The count and latest sent_at of a cart's records are the only inputs to
    the follow-up schedule; failed attempts count like sent ones. A record is
    claimed as ``pending`` for slot ``attempt`` before anything is sent, and
    (cart_id, attempt) is unique, so two workers can never contact the same
    cart for the same slot.
    """

    __tablename__ = "outreach_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[int] = mapped_column(ForeignKey(f"{SCHEMA}.carts.id"), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False)

    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            name="delivery_status",
            schema=SCHEMA,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(255))
    discount_code: Mapped[Optional[str]] = mapped_column(String(64))

    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    cart: Mapped[Cart] = relationship(back_populates="outreach_records")

    __table_args__ = (
        Index("ix_outreach_records_cart_sent", "cart_id", "sent_at"),
        UniqueConstraint("cart_id", "attempt", name="uq_outreach_records_cart_attempt"),
        {"schema": SCHEMA},
    )
