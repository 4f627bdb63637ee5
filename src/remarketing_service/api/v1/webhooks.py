"""Checkout abandonment webhook (ingestion trigger)."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from remarketing_service.api.dependencies import get_collaborators, get_session
from remarketing_service.config import Settings, get_settings
from remarketing_service.exceptions import CollaboratorError
from remarketing_service.infrastructure.collaborators import Collaborators
from remarketing_service.services.ingestion import CartIngestionService, CustomerContact
from remarketing_service.services.orchestrator import OutreachOrchestrator

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class ShippingAddress(BaseModel):
    """Subset of the upstream shipping address we use."""

    model_config = ConfigDict(extra="ignore")

    address1: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None
    zip: str | None = None
    phone: str | None = None


class CheckoutWebhookPayload(BaseModel):
    """Upstream checkout payload. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: str | int | None = Field(None, description="Upstream checkout identifier")
    email: str | None = None
    phone: str | None = None
    shipping_address: ShippingAddress | None = None
    total_price: str | float | int | None = Field(None, description="Cart total")
    currency: str | None = "USD"

    def to_contact(self) -> CustomerContact:
        address = self.shipping_address or ShippingAddress()
        return CustomerContact(
            email=self.email,
            phone=self.phone or address.phone,
            street_address=address.address1,
            first_name=address.first_name,
            last_name=address.last_name,
            city=address.city,
            province=address.province,
            country=address.country,
            zip=address.zip,
        )


class CheckoutWebhookResponse(BaseModel):
    """Acknowledgment for an ingested (or skipped) checkout."""

    success: bool
    skipped: bool = False
    duplicate: bool = False
    customer_id: int | None = None
    cart_id: int | None = None
    tier: str | None = None
    total: str | None = None
    outreach_status: str = "skipped"
    message_id: str | None = None
    message: str


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/checkouts", response_model=CheckoutWebhookResponse)
async def receive_abandoned_checkout(
    payload: CheckoutWebhookPayload,
    session: AsyncSession = Depends(get_session),
    collaborators: Collaborators = Depends(get_collaborators),
    settings: Settings = Depends(get_settings),
) -> CheckoutWebhookResponse:
    """
    Record an abandoned checkout and make the first contact.

    - No email: acknowledged and skipped, nothing is stored
    - Replayed checkout id: acknowledged as a duplicate, no second cart or contact
    - New cart: customer resolved by fingerprint, cart stored, first email sent
      and recorded (a generation failure leaves the cart due for the next pass)
    """
    if not payload.email:
        return CheckoutWebhookResponse(success=True, skipped=True, message="No email provided, skipping")

    ingestion = CartIngestionService(session)
    result = await ingestion.ingest(
        payload.id,
        payload.to_contact(),
        payload.total_price,
        payload.currency,
    )

    response = CheckoutWebhookResponse(
        success=True,
        duplicate=not result.created,
        customer_id=result.customer_id,
        cart_id=result.cart_id,
        tier=result.tier.value,
        total=f"{result.total:.2f}",
        message="Cart abandonment recorded",
    )
    if not result.created:
        response.message = "Duplicate checkout, already recorded"
        return response

    orchestrator = OutreachOrchestrator(
        session,
        collaborators.generator,
        collaborators.discounts,
        collaborators.mailer,
        settings,
    )
    try:
        outcome = await orchestrator.process(result.as_due_cart())
    except CollaboratorError as e:
        logger.warning(
            "Immediate outreach skipped, cart left for the next pass",
            cart_id=result.cart_id,
            collaborator=e.collaborator,
            error=str(e),
        )
        response.message = "Cart abandonment recorded, outreach deferred"
        return response

    if outcome is None:
        response.message = "Cart abandonment recorded, already contacted"
        return response

    response.outreach_status = outcome.status.value
    response.message_id = outcome.provider_message_id
    return response
