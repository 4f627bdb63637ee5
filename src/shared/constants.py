"""Shared constants across the application."""

from datetime import timedelta

# Tier thresholds (cart total, store currency). Upper bounds are inclusive.
LOW_TIER_MAX_TOTAL = 1000
MEDIUM_TIER_MAX_TOTAL = 10000

# Minimum quiet period before the next contact, keyed by number of prior
# outreach records. A cart with no entry here is exhausted.
FOLLOW_UP_BACKOFF = {
    0: timedelta(0),
    1: timedelta(hours=24),
    2: timedelta(days=3),
}
MAX_CONTACTS_PER_CART = len(FOLLOW_UP_BACKOFF)

# Discount policy per tier: (percentage off, code prefix)
DISCOUNT_POLICY = {
    "LOW": (10, "SAVE10"),
    "MEDIUM": (5, "SAVE5"),
}
DISCOUNT_VALIDITY_DAYS = 7

# Delivery priority per tier
HIGH_PRIORITY_TIERS = {"HIGH"}

# Default limits
FOLLOW_UP_LOOKBACK_DAYS = 7
FOLLOW_UP_BATCH_SIZE = 50

# Redis key guarding against overlapping follow-up passes
FOLLOW_UP_LOCK_KEY = "remarketing:follow-up-pass"
