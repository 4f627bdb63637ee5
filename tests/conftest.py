"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from remarketing_service.api.dependencies import get_collaborators, get_session_factory
from remarketing_service.config import Settings, get_settings
from remarketing_service.exceptions import DeliveryError, DiscountError, GenerationError
from remarketing_service.infrastructure.collaborators import Collaborators
from remarketing_service.infrastructure.database.connection import get_async_session_factory
from remarketing_service.infrastructure.database.models import SCHEMA, Base
from remarketing_service.main import create_app
from remarketing_service.services.ports import (
    DeliveryReceipt,
    DueCart,
    GeneratedMessage,
    OutgoingEmail,
)
from remarketing_service.services.tiers import Tier, policy_for


# =============================================================================
# Collaborator fakes
# =============================================================================


class FakeGenerator:
    """Returns a fixed message, or fails / stalls on demand."""

    def __init__(self, fail: bool = False, delay: float = 0) -> None:
        self.fail = fail
        self.delay = delay
        self.calls: list[DueCart] = []

    async def generate(self, cart: DueCart) -> GeneratedMessage:
        self.calls.append(cart)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GenerationError("generator unavailable")
        return GeneratedMessage(
            subject=f"About your cart {cart.checkout_id}",
            body=f"<p>Hi {cart.profile.first_name or 'there'}, your cart is waiting.</p>",
        )


class FakeDiscounts:
    """Issues ``<prefix>-TEST`` codes and records every request."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[Tier, str]] = []

    async def issue(self, tier: Tier, checkout_id: str) -> str | None:
        self.calls.append((tier, checkout_id))
        if self.fail:
            raise DiscountError("discount service down")
        policy = policy_for(tier)
        if not policy.offers_discount:
            return None
        return f"{policy.discount_prefix}-TEST"


class FakeMailer:
    """Captures outgoing emails, or fails / stalls on demand."""

    def __init__(self, fail: bool = False, delay: float = 0) -> None:
        self.fail = fail
        self.delay = delay
        self.sent: list[OutgoingEmail] = []

    async def send(self, email: OutgoingEmail) -> DeliveryReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DeliveryError("mail transport rejected message")
        self.sent.append(email)
        return DeliveryReceipt(provider_message_id=f"msg-{len(self.sent)}")


# =============================================================================
# Settings and database
# =============================================================================


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        redis_host="localhost",
        redis_port=6379,
        collaborator_timeout_seconds=0.5,
        mock_email_storage_path=str(tmp_path / "mock_emails"),
    )


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite engine with the service schema mapped onto the default schema."""
    base = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'remarketing.db'}")
    engine = base.execution_options(schema_translate_map={SCHEMA: None})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await base.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_async_session_factory(db_engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def discounts() -> FakeDiscounts:
    return FakeDiscounts()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def collaborators(
    generator: FakeGenerator, discounts: FakeDiscounts, mailer: FakeMailer
) -> Collaborators:
    return Collaborators(generator=generator, discounts=discounts, mailer=mailer)


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(
    test_settings: Settings,
    collaborators: Collaborators,
) -> Any:
    """Create test application."""
    # Override settings
    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_collaborators] = lambda: collaborators
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(
    app: Any, session_factory: async_sessionmaker[AsyncSession]
) -> AsyncGenerator[AsyncClient, None]:
    """Create asynchronous test client backed by the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def checkout_payload() -> dict:
    """Sample upstream checkout webhook body."""
    return {
        "id": "chk-1001",
        "email": "Jane.Doe@Example.com",
        "phone": "+1 (555) 010-4321",
        "total_price": "249.50",
        "currency": "USD",
        "shipping_address": {
            "address1": "  12 Main Street ",
            "first_name": "Jane",
            "last_name": "Doe",
            "city": "Austin",
            "province": "TX",
            "country": "US",
            "zip": "78701",
        },
        "line_items": [{"title": "Isopropyl Alcohol 99%", "quantity": 2}],
    }
