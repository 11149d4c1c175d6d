"""
Pytest configuration and fixtures for checkout payment tests.
"""

import itertools
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest

from checkout_payments.domain.aggregates import Payment, PaymentStatus
from checkout_payments.domain.pricing import MoneyCalculator, PricingConfig
from checkout_payments.domain.value_objects import Address, CardInfo, ShippingType
from checkout_payments.infrastructure.identifiers import MonotonicIdGenerator
from checkout_payments.infrastructure.repository import (
    InMemoryPaymentRepository,
    InMemoryReceiptRepository,
)
from checkout_payments.infrastructure.settlement import SimulatedSettlementGateway
from checkout_payments.schemas import PaymentRequest
from checkout_payments.services.orchestrator import PaymentOrchestrator

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
VISA = "4111111111111111"


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def id_generator(fixed_clock) -> MonotonicIdGenerator:
    """IDs are uuid(1), uuid(2), ... and receipt numbers start at FIXED_NOW millis."""
    counter = itertools.count(1)
    return MonotonicIdGenerator(
        clock=fixed_clock, random_source=lambda: uuid.UUID(int=next(counter))
    )


@pytest.fixture
def pricing_config() -> PricingConfig:
    return PricingConfig(tax_rate=Decimal("0.13"), expedited_surcharge=Decimal("10.00"))


@pytest.fixture
def calculator(pricing_config) -> MoneyCalculator:
    return MoneyCalculator(pricing_config)


@pytest.fixture
def payment_repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def receipt_repository() -> InMemoryReceiptRepository:
    return InMemoryReceiptRepository()


@pytest.fixture
def settlement() -> SimulatedSettlementGateway:
    return SimulatedSettlementGateway(delay_seconds=0)


@pytest.fixture
def orchestrator(
    payment_repository, receipt_repository, settlement, calculator, id_generator, fixed_clock
) -> PaymentOrchestrator:
    return PaymentOrchestrator(
        payments=payment_repository,
        receipts=receipt_repository,
        settlement=settlement,
        calculator=calculator,
        id_generator=id_generator,
        clock=fixed_clock,
    )


@pytest.fixture
def address() -> Address:
    return Address(
        first_name="Jane",
        last_name="Doe",
        street="King St W",
        street_number=100,
        province="ON",
        country="Canada",
        postal_code="M5X 1A9",
    )


@pytest.fixture
def card_info() -> CardInfo:
    return CardInfo.from_card_number(VISA, "Jane Doe", "12/30")


@pytest.fixture
def payment_factory(address, card_info) -> Callable[..., Payment]:
    """Build a Payment directly, bypassing the orchestrator."""
    counter = itertools.count(1)

    def _factory(
        status: PaymentStatus = PaymentStatus.PROCESSING,
        user_id: int = 1,
        item_id: int = 1,
        payment_id: str | None = None,
        **overrides: Any,
    ) -> Payment:
        fields: dict[str, Any] = dict(
            payment_id=payment_id or f"pay-{next(counter)}",
            user_id=user_id,
            item_id=item_id,
            item_cost=Decimal("49.99"),
            shipping_cost=Decimal("19.99"),
            shipping_type=ShippingType.EXPEDITED,
            estimated_shipping_days=3,
            tax_amount=Decimal("9.10"),
            total_amount=Decimal("79.08"),
            address=address,
            card_info=card_info,
            status=status,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        fields.update(overrides)
        return Payment(**fields)

    return _factory


@pytest.fixture
def request_factory() -> Callable[..., PaymentRequest]:
    """Build a valid checkout request; pass nested dicts to override sections."""

    def _factory(
        user_id: int = 1,
        item_id: int = 1,
        item_cost: str = "49.99",
        shipping: dict[str, Any] | None = None,
        address: dict[str, Any] | None = None,
        card: dict[str, Any] | None = None,
    ) -> PaymentRequest:
        shipping_fields = {"base_cost": "9.99", "shipping_type": "EXPEDITED", "estimated_days": 3}
        address_fields = {
            "first_name": "Jane",
            "last_name": "Doe",
            "street": "King St W",
            "street_number": 100,
            "province": "ON",
            "country": "Canada",
            "postal_code": "M5X 1A9",
        }
        card_fields = {
            "card_number": VISA,
            "name_on_card": "Jane Doe",
            "expiry": "12/30",
            "security_code": "123",
        }
        shipping_fields.update(shipping or {})
        address_fields.update(address or {})
        card_fields.update(card or {})
        return PaymentRequest(
            user_id=user_id,
            item_id=item_id,
            item_cost=Decimal(item_cost),
            shipping=shipping_fields,
            address=address_fields,
            card=card_fields,
        )

    return _factory
