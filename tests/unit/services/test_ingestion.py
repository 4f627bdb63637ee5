"""Unit tests for cart ingestion."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from remarketing_service.exceptions import ValidationError
from remarketing_service.infrastructure.database.models import Cart, Customer
from remarketing_service.services.ingestion import (
    CartIngestionService,
    CustomerContact,
    parse_total,
)
from remarketing_service.services.tiers import Tier

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def contact(**overrides) -> CustomerContact:
    fields = {
        "email": "jane@example.com",
        "phone": "555-010-4321",
        "street_address": "12 Main Street",
        "first_name": "Jane",
        "last_name": "Doe",
        "city": "Austin",
    }
    fields.update(overrides)
    return CustomerContact(**fields)


async def count(session: AsyncSession, model: type) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestParseTotal:
    def test_numeric_string(self) -> None:
        assert parse_total("249.5") == Decimal("249.50")

    def test_missing_is_zero(self) -> None:
        assert parse_total(None) == Decimal("0")
        assert parse_total("") == Decimal("0")

    @pytest.mark.parametrize("value", ["abc", "-1", "NaN"])
    def test_rejects_garbage(self, value: str) -> None:
        with pytest.raises(ValidationError):
            parse_total(value)


class TestIngest:
    """Recording abandonment events."""

    @pytest.mark.asyncio
    async def test_creates_customer_and_cart(self, session: AsyncSession) -> None:
        result = await CartIngestionService(session).ingest(
            "chk-1", contact(), "1500.00", "usd", now=NOW
        )

        assert result.created
        assert result.tier is Tier.MEDIUM
        assert result.total == Decimal("1500.00")
        assert result.currency == "USD"
        assert await count(session, Customer) == 1
        assert await count(session, Cart) == 1

        cart = await session.get(Cart, result.cart_id)
        assert cart.checkout_id == "chk-1"
        assert cart.customer_id == result.customer_id
        assert cart.recovered_at is None

    @pytest.mark.asyncio
    async def test_same_household_reuses_customer(self, session: AsyncSession) -> None:
        service = CartIngestionService(session)
        first = await service.ingest("chk-1", contact(), "10", now=NOW)
        second = await service.ingest(
            "chk-2",
            contact(email="john@EXAMPLE.com", phone="(555) 999-4321", city="Dallas"),
            "20",
            now=NOW,
        )

        assert first.customer_id == second.customer_id
        assert first.cart_id != second.cart_id
        assert await count(session, Customer) == 1

        customer = await session.get(Customer, first.customer_id)
        await session.refresh(customer)
        assert customer.email == "john@EXAMPLE.com"
        assert customer.city == "Dallas"

    @pytest.mark.asyncio
    async def test_different_household_creates_new_customer(self, session: AsyncSession) -> None:
        service = CartIngestionService(session)
        first = await service.ingest("chk-1", contact(), "10", now=NOW)
        second = await service.ingest("chk-2", contact(street_address="99 Elm Road"), "10", now=NOW)

        assert first.customer_id != second.customer_id
        assert await count(session, Customer) == 2

    @pytest.mark.asyncio
    async def test_duplicate_checkout_is_idempotent(self, session: AsyncSession) -> None:
        service = CartIngestionService(session)
        first = await service.ingest("chk-1", contact(), "100", now=NOW)
        replay = await service.ingest("chk-1", contact(), "999999", now=datetime(2026, 10, 19, tzinfo=timezone.utc))

        assert not replay.created
        assert replay.cart_id == first.cart_id
        assert replay.customer_id == first.customer_id
        assert replay.total == Decimal("100.00")
        assert replay.tier is Tier.LOW
        assert await count(session, Cart) == 1

    @pytest.mark.asyncio
    async def test_integer_checkout_id_is_stringified(self, session: AsyncSession) -> None:
        result = await CartIngestionService(session).ingest(31415926, contact(), 5, now=NOW)
        assert result.checkout_id == "31415926"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("checkout_id", "email", "currency"),
        [
            (None, "jane@example.com", "USD"),
            ("  ", "jane@example.com", "USD"),
            ("chk-1", None, "USD"),
            ("chk-1", "jane@example.com", "DOLLARS"),
        ],
    )
    async def test_rejects_invalid_input(
        self, session: AsyncSession, checkout_id, email, currency
    ) -> None:
        with pytest.raises(ValidationError):
            await CartIngestionService(session).ingest(
                checkout_id, contact(email=email), "10", currency, now=NOW
            )
        assert await count(session, Cart) == 0
