"""Message generation collaborators.

Both generators return a structured ``{subject, body}`` pair with an HTML
body. Neither mentions discounts: incentives are appended during composition
only when one was actually issued.
"""

from html import escape

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from remarketing_service.config import Settings
from remarketing_service.exceptions import ConfigurationError, GenerationError
from remarketing_service.services.ports import DueCart, GeneratedMessage
from remarketing_service.services.tiers import Tier

logger = structlog.get_logger()

TIER_GUIDANCE = {
    Tier.HIGH: "Emphasize an urgent personal consultation; this is a high value cart.",
    Tier.MEDIUM: "Offer to connect them with a technical specialist.",
    Tier.LOW: "Focus on product benefits and how easy ordering is.",
}

TIER_CALLOUT = {
    Tier.HIGH: (
        "For an order of this size our sales team can provide personalized "
        "pricing and support. Someone will contact you within the next hour."
    ),
    Tier.MEDIUM: (
        "For your order size we can put you in touch with a technical specialist "
        "and arrange expedited shipping. Our sales team will follow up within 6 hours."
    ),
    Tier.LOW: "Your items are still reserved and you can complete your order in a couple of clicks.",
}


class TemplateMessageGenerator:
    """Fixed HTML template keyed by tier."""

    def __init__(self, settings: Settings):
        self.store_name = settings.store_name
        self.sales_address = settings.sales_cc_address

    async def generate(self, cart: DueCart) -> GeneratedMessage:
        store = escape(self.store_name)
        greeting = escape(cart.profile.first_name or "Valued Customer")
        headline = (
            "Personal assistance available" if cart.tier is Tier.HIGH else "Your cart is waiting"
        )
        subject = f"Complete your {self.store_name} order - {headline}"

        body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2c3e50;">Complete Your {store} Order</h2>
  <p>Dear {greeting},</p>
  <p>We noticed you left some items in your cart at {store}. We'd love to help you complete your order!</p>
  <div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px;">
    <p><strong>Order Value:</strong> {cart.total:.2f} {escape(cart.currency)}</p>
  </div>
  <p><strong>{TIER_CALLOUT[cart.tier]}</strong></p>
  <p>Questions? Contact our sales team directly at
    <a href="mailto:{escape(self.sales_address)}">{escape(self.sales_address)}</a>.</p>
  <p>Best regards,<br>{store} Sales Team</p>
  <p style="color: #666; font-size: 12px;">Order reference: {escape(cart.checkout_id)}</p>
</div>
""".strip()

        return GeneratedMessage(subject=subject, body=body)


class OpenAIMessageGenerator:
    """Chat-completions backed generator returning JSON ``{subject, body}``."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the openai message generator")
        self.settings = settings
        self.client = client

    def build_prompt(self, cart: DueCart) -> str:
        profile = cart.profile
        return f"""Generate a professional cart recovery email for {self.settings.store_name}. Customer details:

Name: {profile.display_name or "Unknown"}
Email: {profile.email}
Cart Value: {cart.total:.2f} {cart.currency}
Cart Tier: {cart.tier.value}
Location: {profile.location or "Unknown"}
Previous reminders: {cart.outreach_count}

Requirements:
- Professional tone appropriate for B2B customers
- {TIER_GUIDANCE[cart.tier]}
- Do not promise discounts or promo codes
- Include a clear call to action
- Keep under 200 words
- Return JSON with "subject" and "body" fields
- Body should be HTML formatted"""

    async def generate(self, cart: DueCart) -> GeneratedMessage:
        payload = {
            "model": self.settings.openai_model,
            "messages": [{"role": "user", "content": self.build_prompt(cart)}],
            "response_format": {"type": "json_object"},
            "temperature": self.settings.openai_temperature,
            "max_tokens": self.settings.openai_max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.settings.openai_api_key}"}

        try:
            response = await self.client.post(
                f"{self.settings.openai_base_url.rstrip('/')}/chat/completions",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            return GeneratedMessage.model_validate_json(content)
        except httpx.HTTPError as e:
            raise GenerationError(f"generation request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError, PydanticValidationError) as e:
            raise GenerationError(f"malformed generation response: {e}") from e
