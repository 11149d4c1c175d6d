"""
Duplicate payment guard.

Best-effort pre-check: two concurrent requests for the same (user, item)
can both pass it. The storage layer's uniqueness constraint on COMPLETED
payments is what actually guarantees at most one.
"""
from typing import Optional

import structlog

from checkout_payments.domain.aggregates import Payment
from checkout_payments.infrastructure.repository import PaymentRepository

logger = structlog.get_logger(__name__)


class DuplicateGuard:
    def __init__(self, payments: PaymentRepository):
        self.payments = payments

    async def find_completed_payment(self, user_id: int, item_id: int) -> Optional[Payment]:
        existing = await self.payments.find_completed(user_id, item_id)
        if existing is not None:
            logger.warning(
                "duplicate_payment_detected",
                user_id=user_id,
                item_id=item_id,
                existing_payment_id=existing.payment_id,
            )
        return existing

    async def has_completed_payment(self, user_id: int, item_id: int) -> bool:
        return await self.find_completed_payment(user_id, item_id) is not None
