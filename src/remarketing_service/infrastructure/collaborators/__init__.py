"""External collaborator clients, constructed per request scope or per pass."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

import httpx

from remarketing_service.config import Settings
from remarketing_service.infrastructure.collaborators.generation import (
    OpenAIMessageGenerator,
    TemplateMessageGenerator,
)
from remarketing_service.infrastructure.collaborators.graph_mail import GraphMailer
from remarketing_service.infrastructure.collaborators.mock_mail import MockMailer
from remarketing_service.infrastructure.collaborators.shopify import ShopifyDiscountIssuer
from remarketing_service.services.ports import DiscountIssuer, Mailer, MessageGenerator


@dataclass
class Collaborators:
    """Handles to the three external collaborators."""

    generator: MessageGenerator
    discounts: DiscountIssuer
    mailer: Mailer


def build_collaborators(settings: Settings, client: httpx.AsyncClient) -> Collaborators:
    """Build collaborators selected by ``settings`` around a shared HTTP client.

    Raises:
        ConfigurationError: a selected collaborator lacks credentials
    """
    if settings.message_generator == "openai":
        generator: MessageGenerator = OpenAIMessageGenerator(settings, client)
    else:
        generator = TemplateMessageGenerator(settings)

    if settings.email_service == "graph":
        mailer: Mailer = GraphMailer(settings, client)
    else:
        mailer = MockMailer(settings.mock_email_storage_path)

    return Collaborators(
        generator=generator,
        discounts=ShopifyDiscountIssuer(settings, client),
        mailer=mailer,
    )


@asynccontextmanager
async def open_collaborators(settings: Settings) -> AsyncGenerator[Collaborators, None]:
    """Open an HTTP client and collaborators for one scope, then close them."""
    async with httpx.AsyncClient(timeout=settings.collaborator_timeout_seconds) as client:
        yield build_collaborators(settings, client)
