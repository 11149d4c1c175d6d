"""
Tests for the SQLAlchemy repositories against an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from checkout_payments.config import Settings
from checkout_payments.domain.aggregates import PaymentStatus
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    PaymentError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.receipts import ReceiptGenerator
from checkout_payments.infrastructure.database import (
    SqlAlchemyPaymentRepository,
    SqlAlchemyReceiptRepository,
    create_engine,
    create_session_factory,
    init_db,
)

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine(
        Settings(database_url="sqlite+aiosqlite://"),
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def sql_payments(session_factory) -> SqlAlchemyPaymentRepository:
    return SqlAlchemyPaymentRepository(session_factory)


@pytest.fixture
def sql_receipts(session_factory) -> SqlAlchemyReceiptRepository:
    return SqlAlchemyReceiptRepository(session_factory)


class TestSqlAlchemyPaymentRepository:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_save_and_load_roundtrip(self, sql_payments, payment_factory):
        payment = payment_factory(user_id=7, item_id=3)

        await sql_payments.save(payment)
        loaded = await sql_payments.find_by_id(payment.payment_id)

        assert loaded is not None
        assert loaded.user_id == 7
        assert loaded.item_id == 3
        assert loaded.total_amount == Decimal("79.08")
        assert loaded.tax_amount == Decimal("9.10")
        assert loaded.status is PaymentStatus.PROCESSING
        assert loaded.address == payment.address
        assert loaded.card_info == payment.card_info
        assert loaded.created_at == payment.created_at

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_id_returns_none(self, sql_payments):
        assert await sql_payments.find_by_id("missing") is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_save_updates_existing_row(self, sql_payments, payment_factory):
        payment = payment_factory()
        await sql_payments.save(payment)

        payment.status = PaymentStatus.FAILED
        payment.error_message = "Card declined"
        await sql_payments.save(payment)

        loaded = await sql_payments.find_by_id(payment.payment_id)
        assert loaded.status is PaymentStatus.FAILED
        assert loaded.error_message == "Card declined"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_find_by_user_and_status(self, sql_payments, payment_factory):
        first = payment_factory(user_id=1, item_id=1)
        second = payment_factory(
            user_id=1,
            item_id=2,
            status=PaymentStatus.FAILED,
            created_at=NOW + timedelta(minutes=1),
        )
        other = payment_factory(user_id=2, item_id=1)
        for payment in (second, first, other):
            await sql_payments.save(payment)

        by_user = await sql_payments.find_by_user(1)
        failed = await sql_payments.find_by_status(PaymentStatus.FAILED)

        assert [p.payment_id for p in by_user] == [first.payment_id, second.payment_id]
        assert [p.payment_id for p in failed] == [second.payment_id]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_second_completed_payment_rejected(self, sql_payments, payment_factory):
        await sql_payments.save(
            payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_1")
        )

        with pytest.raises(DuplicatePaymentError):
            await sql_payments.save(
                payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_2")
            )

        completed = await sql_payments.find_completed(1, 1)
        assert completed.transaction_reference == "txn_1"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_attempts_do_not_block_completion(self, sql_payments, payment_factory):
        await sql_payments.save(payment_factory(status=PaymentStatus.FAILED))
        await sql_payments.save(payment_factory(status=PaymentStatus.FAILED))
        await sql_payments.save(
            payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_1")
        )

        assert await sql_payments.find_completed(1, 1) is not None
        assert len(await sql_payments.find_by_user(1)) == 3


class TestSqlAlchemyReceiptRepository:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_save_and_find(self, sql_payments, sql_receipts, payment_factory):
        payment = payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_1")
        await sql_payments.save(payment)
        receipt = ReceiptGenerator(lambda: "RCP-1", clock=lambda: NOW).generate(payment)

        await sql_receipts.save(receipt)

        assert await sql_receipts.find_by_payment_id(payment.payment_id) == receipt
        assert await sql_receipts.find_by_receipt_number("RCP-1") == receipt
        assert await sql_receipts.find_by_user(payment.user_id) == [receipt]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_one_receipt_per_payment(self, sql_payments, sql_receipts, payment_factory):
        payment = payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_1")
        await sql_payments.save(payment)
        numbers = iter(["RCP-1", "RCP-2"])
        generator = ReceiptGenerator(lambda: next(numbers), clock=lambda: NOW)

        await sql_receipts.save(generator.generate(payment))
        with pytest.raises(PaymentError):
            await sql_receipts.save(generator.generate(payment))

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_taken_receipt_number_reported_as_conflict(
        self, sql_payments, sql_receipts, payment_factory
    ):
        first = payment_factory(status=PaymentStatus.COMPLETED, transaction_reference="txn_1")
        second = payment_factory(
            status=PaymentStatus.COMPLETED, item_id=2, transaction_reference="txn_2"
        )
        await sql_payments.save(first)
        await sql_payments.save(second)
        generator = ReceiptGenerator(lambda: "RCP-1", clock=lambda: NOW)

        await sql_receipts.save(generator.generate(first))
        with pytest.raises(ReceiptNumberConflictError) as exc_info:
            await sql_receipts.save(generator.generate(second))

        assert exc_info.value.receipt_number == "RCP-1"
        assert await sql_receipts.find_by_payment_id(second.payment_id) is None
