"""
Tests for payment ids, transaction references and receipt numbers.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from checkout_payments.infrastructure.identifiers import MonotonicIdGenerator

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
NOW_MILLIS = int(NOW.timestamp() * 1000)


class TestMonotonicIdGenerator:
    @pytest.mark.unit
    def test_receipt_number_uses_clock_millis(self):
        generator = MonotonicIdGenerator(clock=lambda: NOW)

        assert generator.next_receipt_number() == f"RCP-{NOW_MILLIS}"

    @pytest.mark.unit
    def test_same_millisecond_still_unique(self):
        generator = MonotonicIdGenerator(clock=lambda: NOW)

        numbers = [generator.next_receipt_number() for _ in range(100)]

        assert len(set(numbers)) == 100
        millis = [int(n.removeprefix("RCP-")) for n in numbers]
        assert millis == sorted(millis)
        assert millis[-1] == NOW_MILLIS + 99

    @pytest.mark.unit
    def test_clock_going_backwards_does_not_repeat(self):
        times = iter([NOW, NOW - timedelta(seconds=5)])
        generator = MonotonicIdGenerator(clock=lambda: next(times))

        first = generator.next_millis()
        second = generator.next_millis()

        assert second == first + 1

    @pytest.mark.unit
    def test_payment_id_and_reference(self):
        generator = MonotonicIdGenerator(random_source=lambda: uuid.UUID(int=255))

        assert generator.new_payment_id() == "00000000-0000-0000-0000-0000000000ff"
        assert generator.new_transaction_reference() == "txn_" + "0" * 30 + "ff"

    @pytest.mark.unit
    def test_default_ids_are_unique(self):
        generator = MonotonicIdGenerator()

        assert generator.new_payment_id() != generator.new_payment_id()
