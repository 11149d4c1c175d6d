"""
Settlement gateway.

No real card network is contacted. SimulatedSettlementGateway waits for a
configured delay and returns a fixed outcome; anything that talks to a real
processor can implement the same protocol.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

import structlog

from checkout_payments.domain.aggregates import Payment
from checkout_payments.domain.errors import PaymentError

logger = structlog.get_logger(__name__)

DEFAULT_FAILURE_MESSAGE = "Payment declined by processor"


class SettlementError(PaymentError):
    """Raised by a gateway that could not reach a decision (network, processor outage)."""


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of one settlement attempt."""

    succeeded: bool
    error_message: str | None = None

    @classmethod
    def success(cls) -> SettlementResult:
        return cls(succeeded=True)

    @classmethod
    def failure(cls, error_message: str) -> SettlementResult:
        return cls(succeeded=False, error_message=error_message)


class SettlementGateway(Protocol):
    """Interface for the step that decides whether a payment goes through."""

    async def settle(self, payment: Payment) -> SettlementResult:
        ...


class SimulatedSettlementGateway:
    """
    Fixed-outcome settlement with an artificial delay.

    Args:
        delay_seconds: how long "processing" takes
        succeeds: outcome returned for every payment
        failure_message: error text when ``succeeds`` is False
    """

    def __init__(
        self,
        delay_seconds: float = 2.0,
        succeeds: bool = True,
        failure_message: str = DEFAULT_FAILURE_MESSAGE,
    ):
        self.delay_seconds = delay_seconds
        self.succeeds = succeeds
        self.failure_message = failure_message

    async def settle(self, payment: Payment) -> SettlementResult:
        logger.info(
            "simulated_settlement_started",
            payment_id=payment.payment_id,
            card_brand=payment.card_info.brand.value,
            card_last_four=payment.card_info.last_four,
            delay_seconds=self.delay_seconds,
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if self.succeeds:
            return SettlementResult.success()
        return SettlementResult.failure(self.failure_message)
