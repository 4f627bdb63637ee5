"""Microsoft Graph delivery collaborator."""

import asyncio
from typing import Awaitable, Callable

import httpx
import msal
import structlog

from remarketing_service.config import Settings
from remarketing_service.exceptions import ConfigurationError, DeliveryError
from remarketing_service.services.ports import DeliveryReceipt, OutgoingEmail

logger = structlog.get_logger()

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]

TokenProvider = Callable[[], Awaitable[str]]


class GraphMailer:
    """Sends mail from the configured mailbox via Graph ``sendMail``."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        token_provider: TokenProvider | None = None,
    ):
        self.mailbox = settings.email_sender_mailbox
        self.sender_name = f"{settings.store_name} Sales"
        self.client = client

        if token_provider is None:
            if not all([settings.azure_tenant_id, settings.azure_client_id, settings.azure_client_secret]):
                raise ConfigurationError("Azure credentials are required for the graph email service")
            self._msal_app = msal.ConfidentialClientApplication(
                settings.azure_client_id,
                authority=f"https://login.microsoftonline.com/{settings.azure_tenant_id}",
                client_credential=settings.azure_client_secret,
            )
            token_provider = self._acquire_token
        self.token_provider = token_provider

    async def _acquire_token(self) -> str:
        # MSAL is synchronous; keep it off the event loop.
        result = await asyncio.to_thread(
            self._msal_app.acquire_token_for_client, scopes=GRAPH_SCOPES
        )
        if "access_token" not in result:
            raise DeliveryError(
                f"token acquisition failed: {result.get('error_description', 'unknown')}"
            )
        return result["access_token"]

    def build_payload(self, email: OutgoingEmail) -> dict:
        return {
            "message": {
                "subject": email.subject,
                "body": {"contentType": "HTML", "content": email.html_body},
                "toRecipients": [
                    {"emailAddress": {"address": email.recipient, "name": email.recipient_name}}
                ],
                "ccRecipients": [
                    {"emailAddress": {"address": email.cc_address, "name": email.cc_name}}
                ],
                "from": {"emailAddress": {"address": self.mailbox, "name": self.sender_name}},
                "importance": email.importance,
            },
            "saveToSentItems": True,
        }

    async def send(self, email: OutgoingEmail) -> DeliveryReceipt:
        try:
            token = await self.token_provider()
            response = await self.client.post(
                f"{GRAPH_BASE}/users/{self.mailbox}/sendMail",
                json=self.build_payload(email),
                headers={"Authorization": f"Bearer {token}"},
            )
        except DeliveryError:
            raise
        except httpx.HTTPError as e:
            raise DeliveryError(f"graph request failed: {e}") from e
        except Exception as e:
            # msal surfaces transport failures from requests
            raise DeliveryError(f"graph token acquisition failed: {e}") from e

        if response.status_code not in (200, 202):
            raise DeliveryError(f"graph sendMail returned {response.status_code}: {response.text[:300]}")

        message_id = response.headers.get("request-id") or "graph-sent"
        logger.info("Email sent via Microsoft Graph", recipient=email.recipient, message_id=message_id)
        return DeliveryReceipt(provider_message_id=message_id)
