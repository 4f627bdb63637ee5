"""Collaborator ports (interfaces) and the DTOs that cross them."""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from remarketing_service.services.tiers import Tier


class CustomerProfile(BaseModel):
    """Contact attributes used to personalise outreach."""

    email: str
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()

    @property
    def location(self) -> str:
        return ", ".join(p for p in (self.city, self.province, self.country) if p)


class DueCart(BaseModel):
    """A cart selected for contact, with the history that made it due."""

    cart_id: int
    checkout_id: str
    customer_id: int
    total: Decimal
    currency: str
    abandoned_at: datetime
    tier: Tier
    outreach_count: int = 0
    last_sent_at: datetime | None = None
    profile: CustomerProfile


class GeneratedMessage(BaseModel):
    """Structured message content returned by the generation collaborator."""

    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


class OutgoingEmail(BaseModel):
    """Fully composed message handed to the delivery collaborator."""

    recipient: str
    recipient_name: str = ""
    subject: str
    html_body: str
    cc_address: str
    cc_name: str = ""
    importance: str = "normal"


class DeliveryReceipt(BaseModel):
    """Acknowledgment from the delivery collaborator."""

    provider_message_id: str | None = None


class MessageGenerator(Protocol):
    async def generate(self, cart: DueCart) -> GeneratedMessage: ...


class DiscountIssuer(Protocol):
    async def issue(self, tier: Tier, checkout_id: str) -> str | None: ...


class Mailer(Protocol):
    async def send(self, email: OutgoingEmail) -> DeliveryReceipt: ...
