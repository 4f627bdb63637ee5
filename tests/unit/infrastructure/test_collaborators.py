"""Unit tests for external collaborator clients."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from remarketing_service.config import Settings
from remarketing_service.exceptions import (
    ConfigurationError,
    DeliveryError,
    DiscountError,
    GenerationError,
)
from remarketing_service.infrastructure.collaborators import build_collaborators
from remarketing_service.infrastructure.collaborators.generation import (
    OpenAIMessageGenerator,
    TemplateMessageGenerator,
)
from remarketing_service.infrastructure.collaborators.graph_mail import GraphMailer
from remarketing_service.infrastructure.collaborators.mock_mail import MockMailer
from remarketing_service.infrastructure.collaborators.shopify import (
    ShopifyDiscountIssuer,
    discount_code_for,
)
from remarketing_service.services.ports import CustomerProfile, DueCart, OutgoingEmail
from remarketing_service.services.tiers import Tier


def due_cart(tier: Tier = Tier.LOW, total: str = "500") -> DueCart:
    return DueCart(
        cart_id=1,
        checkout_id="chk-abc123",
        customer_id=1,
        total=Decimal(total),
        currency="USD",
        abandoned_at=datetime(2026, 10, 18, tzinfo=timezone.utc),
        tier=tier,
        profile=CustomerProfile(email="jane@example.com", first_name="Jane", city="Austin"),
    )


def outgoing(importance: str = "normal") -> OutgoingEmail:
    return OutgoingEmail(
        recipient="jane@example.com",
        recipient_name="Jane Doe",
        subject="Your cart",
        html_body="<p>Hello</p>",
        cc_address="sales@example.com",
        cc_name="Sales",
        importance=importance,
    )


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# Generation
# =============================================================================


class TestTemplateMessageGenerator:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier", list(Tier))
    async def test_never_mentions_discounts(self, test_settings: Settings, tier: Tier) -> None:
        message = await TemplateMessageGenerator(test_settings).generate(due_cart(tier))
        assert "discount" not in message.body.lower()
        assert "discount" not in message.subject.lower()

    @pytest.mark.asyncio
    async def test_personalised(self, test_settings: Settings) -> None:
        message = await TemplateMessageGenerator(test_settings).generate(due_cart())
        assert "Dear Jane" in message.body
        assert "500.00 USD" in message.body
        assert test_settings.store_name in message.subject


class TestOpenAIMessageGenerator:
    def test_requires_api_key(self, test_settings: Settings) -> None:
        with pytest.raises(ConfigurationError):
            OpenAIMessageGenerator(test_settings, httpx.AsyncClient())

    @pytest.mark.asyncio
    async def test_parses_json_content(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"openai_api_key": "sk-test"})
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            content = json.dumps({"subject": "Still thinking it over?", "body": "<p>Hi Jane</p>"})
            return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

        async with client_for(handler) as client:
            message = await OpenAIMessageGenerator(settings, client).generate(due_cart(Tier.HIGH))

        assert message.subject == "Still thinking it over?"
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert "Cart Tier: HIGH" in seen["body"]["messages"][0]["content"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="upstream error"),
            httpx.Response(200, json={"choices": []}),
            httpx.Response(200, json={"choices": [{"message": {"content": "not json"}}]}),
            httpx.Response(200, json={"choices": [{"message": {"content": '{"subject": ""}'}}]}),
        ],
    )
    async def test_failures_raise_generation_error(self, test_settings: Settings, response) -> None:
        settings = test_settings.model_copy(update={"openai_api_key": "sk-test"})

        async with client_for(lambda request: response) as client:
            with pytest.raises(GenerationError):
                await OpenAIMessageGenerator(settings, client).generate(due_cart())


# =============================================================================
# Discounts
# =============================================================================


class TestShopifyDiscountIssuer:
    @pytest.fixture
    def settings(self, test_settings: Settings) -> Settings:
        return test_settings.model_copy(
            update={"shopify_shop_domain": "shop.myshopify.com", "shopify_access_token": "shpat_test"}
        )

    def test_code_format(self) -> None:
        assert discount_code_for("SAVE10", "chk-abc123") == "SAVE10-ABC123"

    @pytest.mark.asyncio
    async def test_creates_price_rule_and_code(self, settings: Settings) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith("/price_rules.json"):
                return httpx.Response(201, json={"price_rule": {"id": 42}})
            return httpx.Response(201, json={"discount_code": {"id": 7}})

        async with client_for(handler) as client:
            code = await ShopifyDiscountIssuer(settings, client).issue(Tier.MEDIUM, "chk-abc123")

        assert code == "SAVE5-ABC123"
        rule = json.loads(requests[0].content)["price_rule"]
        assert rule["value"] == "-5.0"
        assert rule["usage_limit"] == 1
        assert requests[0].headers["x-shopify-access-token"] == "shpat_test"
        assert requests[1].url.path == "/admin/api/2023-10/price_rules/42/discount_codes.json"

    @pytest.mark.asyncio
    async def test_high_tier_makes_no_request(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with client_for(handler) as client:
            assert await ShopifyDiscountIssuer(settings, client).issue(Tier.HIGH, "chk-1") is None

    @pytest.mark.asyncio
    async def test_unconfigured_is_noop(self, test_settings: Settings) -> None:
        async with client_for(lambda request: httpx.Response(500)) as client:
            assert await ShopifyDiscountIssuer(test_settings, client).issue(Tier.LOW, "chk-1") is None

    @pytest.mark.asyncio
    async def test_http_error_raises_discount_error(self, settings: Settings) -> None:
        async with client_for(lambda request: httpx.Response(422, json={"errors": "bad"})) as client:
            with pytest.raises(DiscountError):
                await ShopifyDiscountIssuer(settings, client).issue(Tier.LOW, "chk-1")


# =============================================================================
# Delivery
# =============================================================================


class TestGraphMailer:
    @staticmethod
    async def token() -> str:
        return "graph-token"

    def test_requires_azure_credentials(self, test_settings: Settings) -> None:
        with pytest.raises(ConfigurationError):
            GraphMailer(test_settings, httpx.AsyncClient())

    @pytest.mark.asyncio
    async def test_sends_with_importance_and_cc(self, test_settings: Settings) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, headers={"request-id": "req-123"})

        async with client_for(handler) as client:
            mailer = GraphMailer(test_settings, client, token_provider=self.token)
            receipt = await mailer.send(outgoing(importance="high"))

        assert receipt.provider_message_id == "req-123"
        assert seen["path"] == f"/v1.0/users/{test_settings.email_sender_mailbox}/sendMail"
        assert seen["auth"] == "Bearer graph-token"
        message = seen["body"]["message"]
        assert message["importance"] == "high"
        assert message["ccRecipients"][0]["emailAddress"]["address"] == "sales@example.com"
        assert message["toRecipients"][0]["emailAddress"]["address"] == "jane@example.com"

    @pytest.mark.asyncio
    async def test_missing_request_id_falls_back(self, test_settings: Settings) -> None:
        async with client_for(lambda request: httpx.Response(202)) as client:
            receipt = await GraphMailer(test_settings, client, token_provider=self.token).send(outgoing())
        assert receipt.provider_message_id == "graph-sent"

    @pytest.mark.asyncio
    async def test_rejection_raises_delivery_error(self, test_settings: Settings) -> None:
        async with client_for(lambda request: httpx.Response(403, text="forbidden")) as client:
            with pytest.raises(DeliveryError):
                await GraphMailer(test_settings, client, token_provider=self.token).send(outgoing())

    @pytest.mark.asyncio
    async def test_token_failure_raises_delivery_error(self, test_settings: Settings) -> None:
        async def unreachable_authority() -> str:
            raise ConnectionError("login.microsoftonline.com unreachable")

        async with client_for(lambda request: httpx.Response(202)) as client:
            mailer = GraphMailer(test_settings, client, token_provider=unreachable_authority)
            with pytest.raises(DeliveryError, match="token acquisition"):
                await mailer.send(outgoing())


class TestMockMailer:
    @pytest.mark.asyncio
    async def test_stores_to_disk(self, tmp_path) -> None:
        mailer = MockMailer(str(tmp_path))

        receipt = await mailer.send(outgoing())

        assert receipt.provider_message_id.startswith("mock-")
        [stored] = list(tmp_path.glob("*.json"))
        assert json.loads(stored.read_text())["recipient"] == "jane@example.com"
        assert mailer.get_sent_emails(recipient="jane@example.com")[0]["subject"] == "Your cart"
        assert mailer.clear_stored_emails() == 1
        assert mailer.get_sent_emails() == []

    @pytest.mark.asyncio
    async def test_in_memory_only(self) -> None:
        mailer = MockMailer()
        await mailer.send(outgoing())
        assert len(mailer.get_sent_emails()) == 1

    @pytest.mark.asyncio
    async def test_history_is_bounded(self) -> None:
        mailer = MockMailer(max_retained=2)
        for subject in ("first", "second", "third"):
            await mailer.send(outgoing().model_copy(update={"subject": subject}))

        assert [e["subject"] for e in mailer.get_sent_emails()] == ["second", "third"]

    @pytest.mark.asyncio
    async def test_storage_failure_raises_delivery_error(self, tmp_path) -> None:
        storage = tmp_path / "mail"
        mailer = MockMailer(str(storage))
        storage.rmdir()

        with pytest.raises(DeliveryError):
            await mailer.send(outgoing())
        assert mailer.get_sent_emails() == []


class TestBuildCollaborators:
    @pytest.mark.asyncio
    async def test_defaults(self, test_settings: Settings) -> None:
        async with httpx.AsyncClient() as client:
            collaborators = build_collaborators(test_settings, client)
        assert isinstance(collaborators.generator, TemplateMessageGenerator)
        assert isinstance(collaborators.mailer, MockMailer)
        assert isinstance(collaborators.discounts, ShopifyDiscountIssuer)

    def test_graph_without_credentials_fails_fast(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"email_service": "graph"})
        with pytest.raises(ConfigurationError):
            build_collaborators(settings, httpx.AsyncClient())
