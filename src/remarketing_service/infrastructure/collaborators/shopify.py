"""Shopify discount issuing collaborator."""

from datetime import datetime, timedelta, timezone

import httpx
import structlog

from remarketing_service.config import Settings
from remarketing_service.exceptions import DiscountError
from remarketing_service.services.tiers import Tier, policy_for

logger = structlog.get_logger()


def discount_code_for(prefix: str, checkout_id: str) -> str:
    """Single-use code tied to the checkout, e.g. ``SAVE10-A1B2C3``."""
    return f"{prefix}-{checkout_id[-6:].upper()}"


class ShopifyDiscountIssuer:
    """Creates a one-off price rule plus discount code per cart.

    Without shop credentials every request is a logged no-op.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    @property
    def base_url(self) -> str:
        return f"https://{self.settings.shopify_shop_domain}/admin/api/{self.settings.shopify_api_version}"

    async def issue(self, tier: Tier, checkout_id: str) -> str | None:
        policy = policy_for(tier)
        if not policy.offers_discount:
            return None

        if not self.settings.shopify_configured:
            logger.info("Shopify credentials not configured, skipping discount code creation")
            return None

        code = discount_code_for(policy.discount_prefix, checkout_id)
        starts_at = datetime.now(timezone.utc)
        ends_at = starts_at + timedelta(days=self.settings.discount_validity_days)
        headers = {"X-Shopify-Access-Token": self.settings.shopify_access_token}

        price_rule = {
            "price_rule": {
                "title": f"Cart Recovery {code}",
                "target_type": "line_item",
                "target_selection": "all",
                "allocation_method": "across",
                "value_type": "percentage",
                "value": f"-{policy.discount_percent}.0",
                "customer_selection": "all",
                "once_per_customer": True,
                "usage_limit": 1,
                "starts_at": starts_at.isoformat(),
                "ends_at": ends_at.isoformat(),
            }
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/price_rules.json", json=price_rule, headers=headers
            )
            response.raise_for_status()
            price_rule_id = response.json()["price_rule"]["id"]

            response = await self.client.post(
                f"{self.base_url}/price_rules/{price_rule_id}/discount_codes.json",
                json={"discount_code": {"code": code}},
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DiscountError(f"discount creation failed for {checkout_id}: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise DiscountError(f"malformed price rule response for {checkout_id}: {e}") from e

        logger.info("Created discount code", code=code, checkout_id=checkout_id, tier=tier.value)
        return code
