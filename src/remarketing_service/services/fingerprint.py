"""Fingerprint identity resolution.

Collapses repeated abandonment events from the same household onto one
customer row even when the email address itself varies.
"""

import hashlib
import re
from dataclasses import dataclass

_NON_DIGITS = re.compile(r"\D")

# Absent from every normalized component: addresses are trimmed, the email
# domain follows the last "@" and the phone part is digits only.
FINGERPRINT_DELIMITER = "\x1f"


@dataclass(frozen=True)
class FingerprintParts:
    """Normalized identity components."""

    street_address: str
    email_domain: str
    phone_last4: str


def normalize(
    email: str | None, phone: str | None, street_address: str | None
) -> FingerprintParts:
    """Normalize partial contact fields; missing values become empty strings."""
    email = (email or "").strip().lower()
    email_domain = email.rsplit("@", 1)[1] if "@" in email else ""

    digits = _NON_DIGITS.sub("", phone or "")
    phone_last4 = digits[-4:] if len(digits) >= 4 else ""

    return FingerprintParts(
        street_address=(street_address or "").strip().lower(),
        email_domain=email_domain,
        phone_last4=phone_last4,
    )


def resolve(email: str | None, phone: str | None, street_address: str | None) -> str:
    """Derive the stable customer fingerprint (SHA-256 hex)."""
    parts = normalize(email, phone, street_address)
    material = FINGERPRINT_DELIMITER.join(
        (parts.street_address, parts.email_domain, parts.phone_last4)
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
