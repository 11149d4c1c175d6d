"""
SQLAlchemy persistence adapter.

Tables:
- payments: one row per checkout attempt, address and card snapshot inlined
- receipts: one row per COMPLETED payment

The duplicate guard's check-then-act is not atomic, so the payments table
carries a partial unique index on (user_id, item_id) WHERE status =
'COMPLETED'. When two requests race, the second COMPLETED write fails here
and surfaces as DuplicatePaymentError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    select,
    text,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from checkout_payments.config import Settings
from checkout_payments.domain.aggregates import Payment, PaymentStatus
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    PaymentError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.receipts import Receipt
from checkout_payments.domain.value_objects import Address, CardBrand, CardInfo, ShippingType

logger = structlog.get_logger(__name__)

COMPLETED_ONLY = text("status = 'COMPLETED'")


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class PaymentRecord(Base):
    """
    Payment records table.

    Full card numbers and security codes are never stored: only the last
    four digits, brand, name and expiry.
    """

    __tablename__ = "payments"

    payment_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    item_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_type: Mapped[str] = mapped_column(String(16), nullable=False)
    estimated_shipping_days: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True
    )

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    street_number: Mapped[int] = mapped_column(Integer, nullable=False)
    province: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(255), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(32), nullable=False)

    card_last_four: Mapped[str] = mapped_column(String(4), nullable=False)
    card_brand: Mapped[str] = mapped_column(String(16), nullable=False)
    name_on_card: Mapped[str] = mapped_column(String(255), nullable=False)
    card_expiry: Mapped[str] = mapped_column(String(5), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "item_cost >= 0 AND shipping_cost >= 0 AND tax_amount >= 0 AND total_amount >= 0",
            name="non_negative_amounts",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'REFUNDED')",
            name="valid_status",
        ),
        CheckConstraint("shipping_type IN ('REGULAR', 'EXPEDITED')", name="valid_shipping_type"),
        CheckConstraint(
            "street_number BETWEEN 1 AND 999999", name="street_number_in_range"
        ),
        Index("idx_payments_user_item", "user_id", "item_id"),
        Index(
            "uq_payments_user_item_completed",
            "user_id",
            "item_id",
            unique=True,
            sqlite_where=COMPLETED_ONLY,
            postgresql_where=COMPLETED_ONLY,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(id={self.payment_id}, user_id={self.user_id}, "
            f"item_id={self.item_id}, status={self.status})>"
        )


class ReceiptRecord(Base):
    """Receipts table, one-to-one with a completed payment."""

    __tablename__ = "receipts"

    receipt_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    receipt_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    payment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.payment_id"), unique=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_address: Mapped[str] = mapped_column(String(500), nullable=False)
    item_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    shipping_estimate_days: Mapped[int] = mapped_column(Integer, nullable=False)
    receipt_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<ReceiptRecord(number={self.receipt_number}, payment_id={self.payment_id})>"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _payment_to_record(payment: Payment, record: PaymentRecord) -> PaymentRecord:
    record.user_id = payment.user_id
    record.item_id = payment.item_id
    record.item_cost = payment.item_cost
    record.shipping_cost = payment.shipping_cost
    record.shipping_type = payment.shipping_type.value
    record.estimated_shipping_days = payment.estimated_shipping_days
    record.tax_amount = payment.tax_amount
    record.total_amount = payment.total_amount
    record.status = payment.status.value
    record.error_message = payment.error_message
    record.transaction_reference = payment.transaction_reference
    record.first_name = payment.address.first_name
    record.last_name = payment.address.last_name
    record.street = payment.address.street
    record.street_number = payment.address.street_number
    record.province = payment.address.province
    record.country = payment.address.country
    record.postal_code = payment.address.postal_code
    record.card_last_four = payment.card_info.last_four
    record.card_brand = payment.card_info.brand.value
    record.name_on_card = payment.card_info.name_on_card
    record.card_expiry = payment.card_info.expiry
    record.version = payment.version
    record.created_at = payment.created_at
    record.updated_at = payment.updated_at
    return record


def _record_to_payment(record: PaymentRecord) -> Payment:
    return Payment(
        payment_id=record.payment_id,
        user_id=record.user_id,
        item_id=record.item_id,
        item_cost=record.item_cost,
        shipping_cost=record.shipping_cost,
        shipping_type=ShippingType(record.shipping_type),
        estimated_shipping_days=record.estimated_shipping_days,
        tax_amount=record.tax_amount,
        total_amount=record.total_amount,
        address=Address(
            first_name=record.first_name,
            last_name=record.last_name,
            street=record.street,
            street_number=record.street_number,
            province=record.province,
            country=record.country,
            postal_code=record.postal_code,
        ),
        card_info=CardInfo(
            last_four=record.card_last_four,
            brand=CardBrand(record.card_brand),
            name_on_card=record.name_on_card,
            expiry=record.card_expiry,
        ),
        status=PaymentStatus(record.status),
        error_message=record.error_message,
        transaction_reference=record.transaction_reference,
        created_at=_as_utc(record.created_at),
        updated_at=_as_utc(record.updated_at),
        version=record.version,
    )


def _receipt_to_record(receipt: Receipt) -> ReceiptRecord:
    return ReceiptRecord(
        receipt_number=receipt.receipt_number,
        payment_id=receipt.payment_id,
        user_id=receipt.user_id,
        item_id=receipt.item_id,
        customer_name=receipt.customer_name,
        customer_address=receipt.customer_address,
        item_cost=receipt.item_cost,
        shipping_cost=receipt.shipping_cost,
        tax_amount=receipt.tax_amount,
        total_paid=receipt.total_paid,
        payment_method=receipt.payment_method.value,
        shipping_estimate_days=receipt.shipping_estimate_days,
        receipt_date=receipt.receipt_date,
    )


def _record_to_receipt(record: ReceiptRecord) -> Receipt:
    return Receipt(
        receipt_number=record.receipt_number,
        payment_id=record.payment_id,
        user_id=record.user_id,
        item_id=record.item_id,
        customer_name=record.customer_name,
        customer_address=record.customer_address,
        item_cost=record.item_cost,
        shipping_cost=record.shipping_cost,
        tax_amount=record.tax_amount,
        total_paid=record.total_paid,
        payment_method=CardBrand(record.payment_method),
        shipping_estimate_days=record.shipping_estimate_days,
        receipt_date=_as_utc(record.receipt_date),
    )


class SqlAlchemyPaymentRepository:
    """PaymentRepository backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def save(self, payment: Payment) -> Payment:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(PaymentRecord, payment.payment_id)
                    if record is None:
                        record = PaymentRecord(payment_id=payment.payment_id)
                        session.add(record)
                    _payment_to_record(payment, record)
        except IntegrityError as e:
            logger.warning(
                "payment_save_integrity_error",
                payment_id=payment.payment_id,
                status=payment.status.value,
                error=str(e.orig),
            )
            if payment.status is PaymentStatus.COMPLETED:
                raise DuplicatePaymentError(
                    payment.user_id, payment.item_id, payment_id=payment.payment_id
                ) from e
            raise PaymentError(
                f"Failed to save payment: {e.orig}", payment_id=payment.payment_id
            ) from e

        return payment

    async def find_by_id(self, payment_id: str) -> Payment | None:
        async with self._session_factory() as session:
            record = await session.get(PaymentRecord, payment_id)
            return _record_to_payment(record) if record else None

    async def find_by_user(self, user_id: int) -> list[Payment]:
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.user_id == user_id)
            .order_by(PaymentRecord.created_at)
        )
        return await self._fetch_all(stmt)

    async def find_by_status(self, status: PaymentStatus) -> list[Payment]:
        stmt = (
            select(PaymentRecord)
            .where(PaymentRecord.status == status.value)
            .order_by(PaymentRecord.created_at)
        )
        return await self._fetch_all(stmt)

    async def find_completed(self, user_id: int, item_id: int) -> Payment | None:
        stmt = select(PaymentRecord).where(
            PaymentRecord.user_id == user_id,
            PaymentRecord.item_id == item_id,
            PaymentRecord.status == PaymentStatus.COMPLETED.value,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            record = result.scalars().first()
            return _record_to_payment(record) if record else None

    async def _fetch_all(self, stmt) -> list[Payment]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_record_to_payment(r) for r in result.scalars().all()]


class SqlAlchemyReceiptRepository:
    """ReceiptRepository backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def save(self, receipt: Receipt) -> Receipt:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(_receipt_to_record(receipt))
        except IntegrityError as e:
            taken = await self.find_by_receipt_number(receipt.receipt_number)
            if taken is not None and taken.payment_id != receipt.payment_id:
                raise ReceiptNumberConflictError(
                    receipt.receipt_number, payment_id=receipt.payment_id
                ) from e
            raise PaymentError(
                f"Failed to save receipt {receipt.receipt_number}: {e.orig}",
                payment_id=receipt.payment_id,
            ) from e
        return receipt

    async def find_by_payment_id(self, payment_id: str) -> Receipt | None:
        stmt = select(ReceiptRecord).where(ReceiptRecord.payment_id == payment_id)
        return await self._fetch_one(stmt)

    async def find_by_receipt_number(self, receipt_number: str) -> Receipt | None:
        stmt = select(ReceiptRecord).where(ReceiptRecord.receipt_number == receipt_number)
        return await self._fetch_one(stmt)

    async def find_by_user(self, user_id: int) -> list[Receipt]:
        stmt = (
            select(ReceiptRecord)
            .where(ReceiptRecord.user_id == user_id)
            .order_by(ReceiptRecord.receipt_date.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_record_to_receipt(r) for r in result.scalars().all()]

    async def _fetch_one(self, stmt) -> Receipt | None:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            return _record_to_receipt(record) if record else None


def create_engine(settings: Settings, **engine_kwargs) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``."""
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        **engine_kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
