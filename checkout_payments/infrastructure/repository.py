"""
Persistence ports and in-memory adapters.

The orchestrator only sees the two protocols below. Production wires the
SQLAlchemy adapter from ``infrastructure.database``; tests and local runs
use the in-memory versions, which enforce the same uniqueness rules:
- at most one COMPLETED payment per (user_id, item_id)
- at most one receipt per payment, receipt numbers unique
"""

from __future__ import annotations

import copy
from typing import Protocol

from checkout_payments.domain.aggregates import Payment, PaymentStatus
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    PaymentError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.receipts import Receipt


class PaymentRepository(Protocol):
    """Interface for payment storage."""

    async def save(self, payment: Payment) -> Payment:
        """
        Insert or update a payment.

        Raises:
            DuplicatePaymentError: if saving would create a second COMPLETED
                payment for the same (user, item) pair
        """
        ...

    async def find_by_id(self, payment_id: str) -> Payment | None:
        ...

    async def find_by_user(self, user_id: int) -> list[Payment]:
        ...

    async def find_by_status(self, status: PaymentStatus) -> list[Payment]:
        ...

    async def find_completed(self, user_id: int, item_id: int) -> Payment | None:
        """The COMPLETED payment for this (user, item) pair, if any."""
        ...


class ReceiptRepository(Protocol):
    """Interface for receipt storage."""

    async def save(self, receipt: Receipt) -> Receipt:
        """
        Insert a receipt.

        Raises:
            ReceiptNumberConflictError: if the receipt number is already taken
            PaymentError: if the payment already has a receipt
        """
        ...

    async def find_by_payment_id(self, payment_id: str) -> Receipt | None:
        ...

    async def find_by_receipt_number(self, receipt_number: str) -> Receipt | None:
        ...

    async def find_by_user(self, user_id: int) -> list[Receipt]:
        ...


# ============================================================================
# IN-MEMORY IMPLEMENTATIONS (for testing and local development)
# ============================================================================


class InMemoryPaymentRepository:
    """
    In-memory payment storage.

    Stores copies so callers cannot change a stored payment without saving.
    """

    def __init__(self):
        self._payments: dict[str, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        if payment.status is PaymentStatus.COMPLETED:
            for other in self._payments.values():
                if (
                    other.payment_id != payment.payment_id
                    and other.user_id == payment.user_id
                    and other.item_id == payment.item_id
                    and other.status is PaymentStatus.COMPLETED
                ):
                    raise DuplicatePaymentError(
                        payment.user_id, payment.item_id, payment_id=payment.payment_id
                    )

        stored = copy.deepcopy(payment)
        stored.mark_events_committed()
        self._payments[payment.payment_id] = stored
        return payment

    async def find_by_id(self, payment_id: str) -> Payment | None:
        payment = self._payments.get(payment_id)
        return copy.deepcopy(payment) if payment else None

    async def find_by_user(self, user_id: int) -> list[Payment]:
        return [
            copy.deepcopy(p)
            for p in sorted(self._payments.values(), key=lambda p: p.created_at)
            if p.user_id == user_id
        ]

    async def find_by_status(self, status: PaymentStatus) -> list[Payment]:
        return [
            copy.deepcopy(p)
            for p in sorted(self._payments.values(), key=lambda p: p.created_at)
            if p.status is status
        ]

    async def find_completed(self, user_id: int, item_id: int) -> Payment | None:
        for payment in self._payments.values():
            if (
                payment.user_id == user_id
                and payment.item_id == item_id
                and payment.status is PaymentStatus.COMPLETED
            ):
                return copy.deepcopy(payment)
        return None

    def __len__(self) -> int:
        return len(self._payments)


class InMemoryReceiptRepository:
    """In-memory receipt storage."""

    def __init__(self):
        self._by_payment: dict[str, Receipt] = {}

    async def save(self, receipt: Receipt) -> Receipt:
        if receipt.payment_id in self._by_payment:
            raise PaymentError(
                "Receipt already issued for this payment", payment_id=receipt.payment_id
            )
        if any(r.receipt_number == receipt.receipt_number for r in self._by_payment.values()):
            raise ReceiptNumberConflictError(receipt.receipt_number, payment_id=receipt.payment_id)
        self._by_payment[receipt.payment_id] = receipt
        return receipt

    async def find_by_payment_id(self, payment_id: str) -> Receipt | None:
        return self._by_payment.get(payment_id)

    async def find_by_receipt_number(self, receipt_number: str) -> Receipt | None:
        for receipt in self._by_payment.values():
            if receipt.receipt_number == receipt_number:
                return receipt
        return None

    async def find_by_user(self, user_id: int) -> list[Receipt]:
        receipts = [r for r in self._by_payment.values() if r.user_id == user_id]
        return sorted(receipts, key=lambda r: r.receipt_date, reverse=True)

    def __len__(self) -> int:
        return len(self._by_payment)
