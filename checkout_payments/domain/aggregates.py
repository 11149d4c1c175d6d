"""
Aggregates - The Payment Consistency Boundary

Payment is the aggregate root of a checkout: amounts, shipping, address and
card snapshot plus the current status. Its status is only ever changed by
the PaymentStateMachine, which enforces the life-cycle below and records a
PaymentStatusChanged event per transition.

State machine:
    PENDING -> PROCESSING -> COMPLETED -> REFUNDED
                    |
                    +-----> FAILED

COMPLETED, FAILED and REFUNDED never go back to settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable

import structlog

from checkout_payments.domain.errors import IllegalTransitionError, PaymentError
from checkout_payments.domain.events import PaymentStatusChanged
from checkout_payments.domain.pricing import PriceBreakdown
from checkout_payments.domain.value_objects import (
    Address,
    CardInfo,
    ShippingType,
    round_money,
)

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


MONEY_FIELDS = ("item_cost", "shipping_cost", "tax_amount", "total_amount")


@dataclass
class Payment:
    """
    Payment Aggregate Root.

    Invariant: every monetary field is non-negative and already rounded
    half-up to cents. Checked on construction.
    """

    payment_id: str
    user_id: int
    item_id: int

    item_cost: Decimal
    shipping_cost: Decimal
    shipping_type: ShippingType
    estimated_shipping_days: int
    tax_amount: Decimal
    total_amount: Decimal

    address: Address
    card_info: CardInfo

    status: PaymentStatus = PaymentStatus.PENDING
    error_message: str | None = None
    transaction_reference: str | None = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 0

    _uncommitted_events: list[PaymentStatusChanged] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        for name in MONEY_FIELDS:
            value = round_money(getattr(self, name))
            if value < 0:
                raise PaymentError(
                    f"{name} must be non-negative, got {value}", payment_id=self.payment_id
                )
            setattr(self, name, value)
        if self.estimated_shipping_days < 0:
            raise PaymentError(
                "estimated_shipping_days must be non-negative", payment_id=self.payment_id
            )
        self.shipping_type = ShippingType(self.shipping_type)
        self.status = PaymentStatus(self.status)

    @classmethod
    def create(
        cls,
        payment_id: str,
        user_id: int,
        item_id: int,
        prices: PriceBreakdown,
        shipping_type: ShippingType,
        estimated_shipping_days: int,
        address: Address,
        card_info: CardInfo,
        initial_status: PaymentStatus = PaymentStatus.PROCESSING,
        now: datetime | None = None,
    ) -> Payment:
        """
        Factory method: build a new payment from computed prices.

        Checkout creates payments directly in PROCESSING; PENDING is allowed
        for callers that want to hold a payment before settlement.
        """
        if initial_status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            raise PaymentError(
                f"A new payment cannot start in {initial_status.value}", payment_id=payment_id
            )
        now = now or utc_now()
        payment = cls(
            payment_id=payment_id,
            user_id=user_id,
            item_id=item_id,
            item_cost=prices.item_cost,
            shipping_cost=prices.shipping_cost,
            shipping_type=shipping_type,
            estimated_shipping_days=estimated_shipping_days,
            tax_amount=prices.tax_amount,
            total_amount=prices.total_amount,
            address=address,
            card_info=card_info,
            status=initial_status,
            created_at=now,
            updated_at=now,
        )
        payment._record(None, initial_status, "created", now)
        return payment

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _record(
        self,
        from_status: PaymentStatus | None,
        to_status: PaymentStatus,
        reason: str | None,
        occurred_at: datetime,
    ) -> None:
        self._uncommitted_events.append(
            PaymentStatusChanged(
                payment_id=self.payment_id,
                sequence_number=self.version,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value,
                reason=reason,
                occurred_at=occurred_at,
            )
        )
        self.version += 1

    def get_uncommitted_events(self) -> list[PaymentStatusChanged]:
        """Get events that haven't been persisted yet."""
        return self._uncommitted_events.copy()

    def mark_events_committed(self) -> None:
        """Clear uncommitted events after persistence."""
        self._uncommitted_events.clear()


TERMINAL_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.REFUNDED}
)


class PaymentStateMachine:
    """
    Legal status transitions and their side effects.

    Illegal transitions raise IllegalTransitionError and leave the payment
    untouched.
    """

    TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
        PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING}),
        PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
        PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
        PaymentStatus.FAILED: frozenset(),
        PaymentStatus.REFUNDED: frozenset(),
    }

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    @classmethod
    def can_transition(cls, current: PaymentStatus, target: PaymentStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())

    def _transition(self, payment: Payment, target: PaymentStatus, reason: str | None) -> None:
        current = payment.status
        if not self.can_transition(current, target):
            logger.error(
                "illegal_status_transition",
                payment_id=payment.payment_id,
                from_status=current.value,
                to_status=target.value,
            )
            raise IllegalTransitionError(current.value, target.value, payment_id=payment.payment_id)

        now = self._clock()
        payment.status = target
        payment.updated_at = now
        payment._record(current, target, reason, now)

    def start_processing(self, payment: Payment) -> None:
        self._transition(payment, PaymentStatus.PROCESSING, "processing")

    def complete(self, payment: Payment, transaction_reference: str) -> None:
        """Settlement succeeded: attach the reference, clear any error."""
        if not transaction_reference:
            raise PaymentError("A transaction reference is required", payment_id=payment.payment_id)
        self._transition(payment, PaymentStatus.COMPLETED, "settlement_succeeded")
        payment.transaction_reference = transaction_reference
        payment.error_message = None

    def fail(self, payment: Payment, error_message: str) -> None:
        """Settlement failed: keep the reason, never a transaction reference."""
        self._transition(payment, PaymentStatus.FAILED, error_message)
        payment.error_message = error_message or "Payment failed"
        payment.transaction_reference = None

    def refund(self, payment: Payment, reason: str | None = None) -> None:
        """Administrative refund of a completed payment."""
        self._transition(payment, PaymentStatus.REFUNDED, reason or "refunded")
