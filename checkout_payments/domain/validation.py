"""
Input validation for card data and address numbers.

Nothing in here raises for bad input. Every failing rule is collected so a
checkout form can show all problems at once, in a fixed order:
card number, name, expiry, security code.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from checkout_payments.domain.errors import ErrorKind, Outcome
from checkout_payments.domain.value_objects import MAX_STREET_NUMBER, CardBrand

CARD_NUMBER_PATTERN = re.compile(r"[0-9]{13,19}")
SECURITY_CODE_PATTERN = re.compile(r"[0-9]{3,4}")
EXPIRY_DATE_PATTERN = re.compile(r"(0[1-9]|1[0-2])/([0-9]{2})")
NAME_PATTERN = re.compile(r"[A-Za-z\s]+")

INVALID_CARD_NUMBER = "Invalid card number"
INVALID_NAME = "Invalid name on card"
INVALID_EXPIRY = "Invalid or expired card"
INVALID_SECURITY_CODE = "Invalid security code"


def luhn_check(digits: str) -> bool:
    """
    Luhn checksum over a string of ASCII digits.

    From the rightmost digit, double every second digit (subtract 9 when the
    double exceeds 9) and sum everything; valid iff the sum is a multiple of 10.
    """
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def infer_card_brand(card_number: str | None) -> CardBrand:
    return CardBrand.from_card_number(card_number)


def validate_street_number(value: int | str | None) -> Outcome[int]:
    """
    Coerce and range-check a street number (1..999,999).

    Returns the integer on success; DOMAIN_RANGE when the number is out of
    range, VALIDATION when it is not a whole number at all.
    """
    if isinstance(value, bool) or value is None:
        return Outcome.failure(ErrorKind.VALIDATION, "Street number is required")
    try:
        number = int(str(value).strip())
    except ValueError:
        return Outcome.failure(ErrorKind.VALIDATION, "Street number must be a whole number")

    if number <= 0 or number > MAX_STREET_NUMBER:
        return Outcome.failure(
            ErrorKind.DOMAIN_RANGE,
            f"Street number must be between 1 and {MAX_STREET_NUMBER:,}",
        )
    return Outcome.success(number)


@dataclass(frozen=True)
class ValidationResult:
    """All card rule failures, in display order."""

    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        return "; ".join(self.errors)

    def to_outcome(self) -> Outcome[None]:
        if self.valid:
            return Outcome.success()
        return Outcome.failure(ErrorKind.VALIDATION, *self.errors)


class CardValidator:
    """
    Validates submitted card fields.

    ``today`` is injectable so expiry checks are deterministic in tests.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    @staticmethod
    def is_valid_card_number(card_number: str | None) -> bool:
        if not card_number:
            return False
        clean = "".join(card_number.split())
        if not CARD_NUMBER_PATTERN.fullmatch(clean):
            return False
        return luhn_check(clean)

    @staticmethod
    def is_valid_security_code(security_code: str | None) -> bool:
        if not security_code:
            return False
        return SECURITY_CODE_PATTERN.fullmatch(security_code) is not None

    @staticmethod
    def is_valid_name_on_card(name: str | None) -> bool:
        if not name:
            return False
        trimmed = name.strip()
        return len(trimmed) >= 2 and NAME_PATTERN.fullmatch(trimmed) is not None

    def is_valid_expiry(self, expiry: str | None) -> bool:
        """
        ``MM/YY``; a card stays valid through the last day of its expiry month.
        """
        if not expiry:
            return False
        match = EXPIRY_DATE_PATTERN.fullmatch(expiry)
        if match is None:
            return False

        month = int(match.group(1))
        year = 2000 + int(match.group(2))
        last_day = calendar.monthrange(year, month)[1]
        return date(year, month, last_day) >= self._today()

    def validate(
        self,
        card_number: str | None,
        name_on_card: str | None,
        expiry: str | None,
        security_code: str | None,
    ) -> ValidationResult:
        errors: list[str] = []

        if not self.is_valid_card_number(card_number):
            errors.append(INVALID_CARD_NUMBER)
        if not self.is_valid_name_on_card(name_on_card):
            errors.append(INVALID_NAME)
        if not self.is_valid_expiry(expiry):
            errors.append(INVALID_EXPIRY)
        if not self.is_valid_security_code(security_code):
            errors.append(INVALID_SECURITY_CODE)

        return ValidationResult(errors=tuple(errors))
