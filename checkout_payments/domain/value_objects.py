"""
Value Objects - Immutable Checkout Concepts

Two value objects are equal if their values are equal. None of them can be
changed once attached to a Payment.

The card value object never holds the full card number or the security code:
only the last four digits, the inferred brand, the name and the expiry.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

CENT = Decimal("0.01")
MAX_STREET_NUMBER = 999_999


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert input to Decimal without binary floating point artifacts.

    Decimal(0.1) == 0.1000000000000000055... but Decimal(str(0.1)) == 0.1
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to cents, half-up (2.345 -> 2.35, 2.344 -> 2.34)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class ShippingType(str, Enum):
    """Shipping speed chosen at checkout."""

    REGULAR = "REGULAR"
    EXPEDITED = "EXPEDITED"


class CardBrand(str, Enum):
    """Card network, inferred from the leading digit."""

    VISA = "VISA"
    MASTERCARD = "MASTERCARD"
    AMEX = "AMEX"
    DISCOVER = "DISCOVER"
    OTHER = "OTHER"

    @classmethod
    def from_card_number(cls, card_number: str | None) -> CardBrand:
        clean = "".join((card_number or "").split())
        prefixes = {
            "4": cls.VISA,
            "5": cls.MASTERCARD,
            "3": cls.AMEX,
            "6": cls.DISCOVER,
        }
        return prefixes.get(clean[:1], cls.OTHER)


class Address(BaseModel):
    """
    Shipping address embedded in a Payment.

    street_number is range-checked here as well as by
    ``validate_street_number``; the orchestrator checks first so customers get
    an Outcome instead of a pydantic error.
    """

    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    street: str
    street_number: int = Field(gt=0, le=MAX_STREET_NUMBER)
    province: str
    country: str
    postal_code: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def single_line(self) -> str:
        """e.g. ``12 King St, ON, Canada, M5V 2T6, Jane Doe``"""
        return (
            f"{self.street_number} {self.street}, {self.province}, "
            f"{self.country}, {self.postal_code}, {self.full_name}"
        )

    @property
    def multi_line(self) -> str:
        return (
            f"{self.full_name}\n"
            f"{self.street_number} {self.street}\n"
            f"{self.province}, {self.country} {self.postal_code}"
        )


class CardInfo(BaseModel):
    """
    Card details safe to persist.

    CRITICAL: Build through ``from_card_number`` so the full number is
    reduced to its last four digits before anything is stored.
    """

    model_config = ConfigDict(frozen=True)

    last_four: str = Field(min_length=4, max_length=4)
    brand: CardBrand
    name_on_card: str
    expiry: str

    @field_validator("last_four")
    @classmethod
    def validate_last_four(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("last_four must be digits")
        return v

    @classmethod
    def from_card_number(cls, card_number: str, name_on_card: str, expiry: str) -> CardInfo:
        clean = "".join(card_number.split())
        return cls(
            last_four=clean[-4:],
            brand=CardBrand.from_card_number(clean),
            name_on_card=name_on_card.strip(),
            expiry=expiry,
        )

    @property
    def masked_number(self) -> str:
        return f"**** **** **** {self.last_four}"
