"""
Error kinds and the Outcome result type.

Rejected input is not exceptional: card checks and range checks return an
Outcome whose ``kind`` tells the caller which branch to take. Exceptions are
kept for integration mistakes (illegal transitions, missing aggregates) and
for the storage-level uniqueness constraint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Discriminates why an operation did not succeed."""

    VALIDATION = "validation"
    DOMAIN_RANGE = "domain_range"
    DUPLICATE = "duplicate"
    SETTLEMENT_FAILED = "settlement_failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of a fallible domain operation.

    Example:
        outcome = validate_street_number(0)
        if outcome.kind is ErrorKind.DOMAIN_RANGE:
            ...
    """

    ok: bool
    value: T | None = None
    kind: ErrorKind | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls, value: T | None = None) -> Outcome[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, *errors: str, value: Any = None) -> Outcome[T]:
        return cls(ok=False, value=value, kind=kind, errors=tuple(errors))

    @property
    def message(self) -> str:
        """Errors joined the way they are shown to a customer."""
        return "; ".join(self.errors)


class PaymentError(Exception):
    """Domain error for payment operations."""

    def __init__(self, message: str, payment_id: str | None = None):
        self.payment_id = payment_id
        super().__init__(message)


class IllegalTransitionError(PaymentError):
    """A status change the life-cycle does not allow (e.g. FAILED -> COMPLETED)."""

    def __init__(self, current: Any, target: Any, payment_id: str | None = None):
        self.current = current
        self.target = target
        super().__init__(
            f"Illegal payment status transition {current} -> {target}",
            payment_id=payment_id,
        )


class PaymentNotFoundError(PaymentError):
    """Raised when a payment id is unknown to the repository."""


class DuplicatePaymentError(PaymentError):
    """
    Raised by a persistence adapter when a second COMPLETED payment would
    exist for the same (user, item) pair.
    """

    def __init__(self, user_id: int, item_id: int, payment_id: str | None = None):
        self.user_id = user_id
        self.item_id = item_id
        super().__init__(
            f"Completed payment already exists for user {user_id} and item {item_id}",
            payment_id=payment_id,
        )


class ReceiptNumberConflictError(PaymentError):
    """Raised by a receipt store when the receipt number is already taken."""

    def __init__(self, receipt_number: str, payment_id: str | None = None):
        self.receipt_number = receipt_number
        super().__init__(f"Receipt number {receipt_number} already used", payment_id=payment_id)
