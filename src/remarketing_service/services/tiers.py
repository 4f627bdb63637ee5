"""Cart value tiers and the outreach policy attached to each tier."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from shared.constants import (
    DISCOUNT_POLICY,
    HIGH_PRIORITY_TIERS,
    LOW_TIER_MAX_TOTAL,
    MEDIUM_TIER_MAX_TOTAL,
)


class Tier(str, Enum):
    """Cart value tier."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def classify(total: Decimal | float | int) -> Tier:
    """Map a cart total to its tier. Boundary values belong to the lower tier."""
    if total <= LOW_TIER_MAX_TOTAL:
        return Tier.LOW
    if total <= MEDIUM_TIER_MAX_TOTAL:
        return Tier.MEDIUM
    return Tier.HIGH


@dataclass(frozen=True)
class TierPolicy:
    """What a tier gets: an automatic discount and/or high delivery priority."""

    tier: Tier
    discount_percent: int | None
    discount_prefix: str | None
    high_priority: bool

    @property
    def offers_discount(self) -> bool:
        return self.discount_percent is not None

    @property
    def importance(self) -> str:
        return "high" if self.high_priority else "normal"


def policy_for(tier: Tier) -> TierPolicy:
    """Outreach policy for ``tier``. HIGH carts are left to the sales team."""
    percent, prefix = DISCOUNT_POLICY.get(tier.value, (None, None))
    return TierPolicy(
        tier=tier,
        discount_percent=percent,
        discount_prefix=prefix,
        high_priority=tier.value in HIGH_PRIORITY_TIERS,
    )
