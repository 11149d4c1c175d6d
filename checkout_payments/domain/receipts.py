"""Receipts for completed payments."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from checkout_payments.domain.aggregates import Payment, PaymentStatus, utc_now
from checkout_payments.domain.errors import PaymentError
from checkout_payments.domain.value_objects import CardBrand

RECEIPT_PREFIX = "RCP-"


class Receipt(BaseModel):
    """
    Snapshot of a completed payment.

    One receipt per payment; the receipt number is assigned once at
    generation and the model is frozen afterwards.
    """

    model_config = ConfigDict(frozen=True)

    receipt_number: str = Field(pattern=r"^RCP-\d+$")
    payment_id: str
    user_id: int
    item_id: int
    customer_name: str
    customer_address: str
    item_cost: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_paid: Decimal
    payment_method: CardBrand
    shipping_estimate_days: int
    receipt_date: datetime

    @property
    def shipping_estimate_message(self) -> str:
        return f"The item will be shipped in {self.shipping_estimate_days} days"


class ReceiptGenerator:
    """
    Derives a Receipt from a COMPLETED payment.

    Args:
        receipt_numbers: returns a fresh ``RCP-<millis>`` number per call,
            strictly increasing
        clock: current time for the receipt date
    """

    def __init__(
        self,
        receipt_numbers: Callable[[], str],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._receipt_numbers = receipt_numbers
        self._clock = clock

    def generate(self, payment: Payment) -> Receipt:
        if payment.status is not PaymentStatus.COMPLETED:
            raise PaymentError(
                f"Cannot issue a receipt for a payment in status {payment.status.value}",
                payment_id=payment.payment_id,
            )

        return Receipt(
            receipt_number=self._receipt_numbers(),
            payment_id=payment.payment_id,
            user_id=payment.user_id,
            item_id=payment.item_id,
            customer_name=payment.address.full_name,
            customer_address=payment.address.single_line,
            item_cost=payment.item_cost,
            shipping_cost=payment.shipping_cost,
            tax_amount=payment.tax_amount,
            total_paid=payment.total_amount,
            payment_method=payment.card_info.brand,
            shipping_estimate_days=payment.estimated_shipping_days,
            receipt_date=self._clock(),
        )
