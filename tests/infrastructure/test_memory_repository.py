"""
Tests for the in-memory repositories.
"""

import pytest

from checkout_payments.domain.aggregates import PaymentStatus
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    PaymentError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.receipts import ReceiptGenerator


class TestInMemoryPaymentRepository:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self, payment_repository, payment_factory):
        payment = payment_factory()
        await payment_repository.save(payment)

        payment.status = PaymentStatus.FAILED

        loaded = await payment_repository.find_by_id(payment.payment_id)
        assert loaded.status is PaymentStatus.PROCESSING

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_leaves_callers_events_alone(self, payment_repository, payment_factory):
        payment = payment_factory()
        payment._record(None, PaymentStatus.PROCESSING, "created", payment.created_at)

        await payment_repository.save(payment)

        assert len(payment.get_uncommitted_events()) == 1
        loaded = await payment_repository.find_by_id(payment.payment_id)
        assert loaded.get_uncommitted_events() == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_completed_payment_rejected(self, payment_repository, payment_factory):
        await payment_repository.save(payment_factory(status=PaymentStatus.COMPLETED))

        with pytest.raises(DuplicatePaymentError) as exc_info:
            await payment_repository.save(payment_factory(status=PaymentStatus.COMPLETED))

        assert (exc_info.value.user_id, exc_info.value.item_id) == (1, 1)
        assert len(payment_repository) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_resaving_same_completed_payment_allowed(self, payment_repository, payment_factory):
        payment = payment_factory(status=PaymentStatus.COMPLETED)

        await payment_repository.save(payment)
        await payment_repository.save(payment)

        assert len(payment_repository) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_item_not_a_duplicate(self, payment_repository, payment_factory):
        await payment_repository.save(payment_factory(status=PaymentStatus.COMPLETED, item_id=1))
        await payment_repository.save(payment_factory(status=PaymentStatus.COMPLETED, item_id=2))

        assert len(await payment_repository.find_by_status(PaymentStatus.COMPLETED)) == 2


class TestInMemoryReceiptRepository:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_duplicate_receipt_number_rejected(self, receipt_repository, payment_factory):
        generator = ReceiptGenerator(lambda: "RCP-1")

        await receipt_repository.save(
            generator.generate(payment_factory(status=PaymentStatus.COMPLETED))
        )
        with pytest.raises(ReceiptNumberConflictError):
            await receipt_repository.save(
                generator.generate(payment_factory(status=PaymentStatus.COMPLETED, item_id=2))
            )
        assert len(receipt_repository) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_receipt_for_payment_rejected(self, receipt_repository, payment_factory):
        payment = payment_factory(status=PaymentStatus.COMPLETED)
        numbers = iter(["RCP-1", "RCP-2"])
        generator = ReceiptGenerator(lambda: next(numbers))

        await receipt_repository.save(generator.generate(payment))
        with pytest.raises(PaymentError) as exc_info:
            await receipt_repository.save(generator.generate(payment))

        assert not isinstance(exc_info.value, ReceiptNumberConflictError)
