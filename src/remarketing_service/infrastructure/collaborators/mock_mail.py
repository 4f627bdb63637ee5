"""Mock mail transport for testing and development."""

import json
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

from remarketing_service.exceptions import DeliveryError
from remarketing_service.services.ports import DeliveryReceipt, OutgoingEmail

logger = structlog.get_logger()

# In-memory history kept per process; older entries only live on disk
MAX_RETAINED_EMAILS = 500


class MockMailer:
    """
    Mock delivery collaborator.

    Stores sent emails to the filesystem for inspection instead of actually
    sending them. Pass ``storage_path=None`` to keep them in memory only.
    """

    def __init__(self, storage_path: str | None = None, max_retained: int = MAX_RETAINED_EMAILS):
        self.storage_path = Path(storage_path) if storage_path else None
        if self.storage_path:
            self.storage_path.mkdir(parents=True, exist_ok=True)
        self.sent_emails: deque[dict[str, Any]] = deque(maxlen=max_retained)

    async def send(self, email: OutgoingEmail) -> DeliveryReceipt:
        """Record the email and return a generated message id."""
        message_id = f"mock-{uuid4()}"
        timestamp = datetime.now(timezone.utc)

        email_record = {
            "message_id": message_id,
            **email.model_dump(),
            "sent_at": timestamp.isoformat(),
        }

        stored_at = None
        if self.storage_path:
            filepath = self.storage_path / f"{timestamp.strftime('%Y%m%d_%H%M%S')}_{message_id}.json"
            try:
                with open(filepath, "w") as f:
                    json.dump(email_record, f, indent=2)
            except OSError as e:
                raise DeliveryError(f"mock mail storage failed: {e}") from e
            stored_at = str(filepath)
        self.sent_emails.append(email_record)

        logger.info(
            "Mock email sent",
            message_id=message_id,
            recipient=email.recipient,
            subject=email.subject,
            stored_at=stored_at,
        )
        return DeliveryReceipt(provider_message_id=message_id)

    def get_sent_emails(self, limit: int = 50, recipient: str | None = None) -> list[dict[str, Any]]:
        """Retrieve recently sent mock emails, optionally for one recipient."""
        emails = list(self.sent_emails)
        if recipient:
            emails = [e for e in emails if e["recipient"] == recipient]
        return emails[-limit:]

    def clear_stored_emails(self) -> int:
        """Clear all stored mock emails and return how many were deleted."""
        count = 0
        if self.storage_path:
            for filepath in self.storage_path.glob("*.json"):
                filepath.unlink()
                count += 1

        self.sent_emails.clear()
        logger.info("Cleared mock emails", count=count)
        return count
