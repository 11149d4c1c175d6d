"""
Money Calculator - Exact Checkout Totals

CRITICAL: Rounding happens at every step, in this order:

    shipping = round(base + surcharge if expedited else base)
    subtotal = round(item + shipping)
    tax      = round(subtotal * rate)
    total    = round(subtotal + tax)

Rounding once at the end gives different cents on half-cent boundaries, so
the order above is part of the contract. All values are Decimal, half-up.

Example (expedited, 13% tax):
    item 49.99, base 9.99, surcharge 10.00
    shipping 19.99, subtotal 69.98, tax 9.0974 -> 9.10, total 79.08
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkout_payments.domain.errors import ErrorKind, Outcome
from checkout_payments.domain.value_objects import ShippingType, round_money, to_decimal


@dataclass(frozen=True)
class PricingConfig:
    """Tax rate and expedited surcharge, fixed for the lifetime of a calculator."""

    tax_rate: Decimal
    expedited_surcharge: Decimal

    def __post_init__(self) -> None:
        rate = to_decimal(self.tax_rate)
        surcharge = to_decimal(self.expedited_surcharge)
        if not Decimal("0") <= rate <= Decimal("1"):
            raise ValueError(f"Tax rate must be between 0 and 1, got {rate}")
        if surcharge < 0:
            raise ValueError(f"Expedited surcharge must be non-negative, got {surcharge}")
        # frozen dataclass: normalise through object.__setattr__; the surcharge
        # stays unrounded so shipping is rounded once, after the addition
        object.__setattr__(self, "tax_rate", rate)
        object.__setattr__(self, "expedited_surcharge", surcharge)


@dataclass(frozen=True)
class PriceBreakdown:
    item_cost: Decimal
    shipping_cost: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class MoneyCalculator:
    """Pure, stateless pricing. Safe to share between concurrent requests."""

    def __init__(self, config: PricingConfig):
        self.config = config

    @staticmethod
    def check_amounts(
        item_cost: Decimal | int | float | str,
        shipping_base_cost: Decimal | int | float | str,
    ) -> Outcome[None]:
        """Reject negative or non-numeric amounts before any arithmetic."""
        errors: list[str] = []
        for label, raw in (("Item cost", item_cost), ("Shipping cost", shipping_base_cost)):
            try:
                value = to_decimal(raw)
            except ArithmeticError:
                errors.append(f"{label} must be a number")
                continue
            if not value.is_finite():
                errors.append(f"{label} must be a number")
            elif value < 0:
                errors.append(f"{label} must not be negative")

        if errors:
            return Outcome.failure(ErrorKind.VALIDATION, *errors)
        return Outcome.success()

    def shipping_cost(
        self, shipping_base_cost: Decimal | int | float | str, shipping_type: ShippingType
    ) -> Decimal:
        base = to_decimal(shipping_base_cost)
        if ShippingType(shipping_type) is ShippingType.EXPEDITED:
            return round_money(base + self.config.expedited_surcharge)
        return round_money(base)

    def calculate(
        self,
        item_cost: Decimal | int | float | str,
        shipping_base_cost: Decimal | int | float | str,
        shipping_type: ShippingType,
    ) -> PriceBreakdown:
        """
        Compute shipping, tax and total with stepwise half-up rounding.

        Raises:
            ValueError: if an amount is negative (call ``check_amounts`` first)
        """
        if not self.check_amounts(item_cost, shipping_base_cost).ok:
            raise ValueError("Amounts must be non-negative numbers")

        item = round_money(item_cost)
        shipping = self.shipping_cost(shipping_base_cost, shipping_type)
        subtotal = round_money(item + shipping)
        tax = round_money(subtotal * self.config.tax_rate)
        total = round_money(subtotal + tax)

        return PriceBreakdown(
            item_cost=item,
            shipping_cost=shipping,
            subtotal=subtotal,
            tax_amount=tax,
            total_amount=total,
        )
