"""
Domain Layer - Pure Checkout Logic

This layer contains:
- Value objects (Address, CardInfo, shipping and card enums)
- Validation (card fields, street numbers)
- Pricing (stepwise half-up totals)
- The Payment aggregate and its state machine
- Receipt derivation

Key principle: ZERO dependencies on infrastructure.
Clocks and ID sources are passed in as plain callables.
"""
from checkout_payments.domain.aggregates import Payment, PaymentStateMachine, PaymentStatus
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    ErrorKind,
    IllegalTransitionError,
    Outcome,
    PaymentError,
    PaymentNotFoundError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.pricing import MoneyCalculator, PriceBreakdown, PricingConfig
from checkout_payments.domain.receipts import Receipt, ReceiptGenerator
from checkout_payments.domain.validation import (
    CardValidator,
    ValidationResult,
    infer_card_brand,
    luhn_check,
    validate_street_number,
)
from checkout_payments.domain.value_objects import Address, CardBrand, CardInfo, ShippingType

__all__ = [
    "Address",
    "CardBrand",
    "CardInfo",
    "CardValidator",
    "DuplicatePaymentError",
    "ErrorKind",
    "IllegalTransitionError",
    "MoneyCalculator",
    "Outcome",
    "Payment",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentStateMachine",
    "PaymentStatus",
    "PriceBreakdown",
    "PricingConfig",
    "Receipt",
    "ReceiptGenerator",
    "ReceiptNumberConflictError",
    "ShippingType",
    "ValidationResult",
    "infer_card_brand",
    "luhn_check",
    "validate_street_number",
]
