"""
Payment orchestrator.

Drives one checkout end to end:
1. Duplicate check (existing COMPLETED payment for user + item)
2. Validate card fields, amounts and street number
3. Compute shipping, tax and total
4. Persist the payment in PROCESSING
5. Simulated settlement
6. Transition to COMPLETED or FAILED and persist
7. Generate and persist the receipt
8. Build the response

This is the only component that talks to the repositories and the
settlement gateway. Everything it calls before step 4 is pure.
"""
import asyncio
import copy
import uuid
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from checkout_payments.config import Settings
from checkout_payments.domain.aggregates import Payment, PaymentStateMachine, PaymentStatus, utc_now
from checkout_payments.domain.errors import (
    DuplicatePaymentError,
    ErrorKind,
    Outcome,
    PaymentError,
    PaymentNotFoundError,
    ReceiptNumberConflictError,
)
from checkout_payments.domain.pricing import MoneyCalculator
from checkout_payments.domain.receipts import Receipt, ReceiptGenerator
from checkout_payments.domain.validation import CardValidator, validate_street_number
from checkout_payments.domain.value_objects import Address, CardInfo
from checkout_payments.infrastructure.identifiers import IdGenerator, MonotonicIdGenerator
from checkout_payments.infrastructure.repository import PaymentRepository, ReceiptRepository
from checkout_payments.infrastructure.settlement import (
    SettlementError,
    SettlementGateway,
    SettlementResult,
    SimulatedSettlementGateway,
)
from checkout_payments.schemas import PaymentRequest, PaymentResponse, ReceiptSummary
from checkout_payments.services.duplicate_guard import DuplicateGuard

logger = structlog.get_logger(__name__)

DUPLICATE_MESSAGE = "Payment already completed for this user and item."
SUCCESS_MESSAGE = "Payment processed successfully"
MAX_RECEIPT_ATTEMPTS = 5


class PaymentOrchestrator:
    """
    Composes validation, pricing, settlement and receipts into one flow.

    Args:
        payments: payment persistence port
        receipts: receipt persistence port
        settlement: gateway deciding success or failure
        calculator: pricing with the configured tax rate and surcharge
        validator: card validator (defaults to one sharing ``clock``)
        state_machine: status transitions (defaults to one sharing ``clock``)
        id_generator: payment ids, transaction references, receipt numbers
        clock: current time, timezone-aware
        settlement_timeout_seconds: fail the payment if settlement takes longer
        currency: ISO code shown on receipt summaries
    """

    def __init__(
        self,
        payments: PaymentRepository,
        receipts: ReceiptRepository,
        settlement: SettlementGateway,
        calculator: MoneyCalculator,
        validator: Optional[CardValidator] = None,
        state_machine: Optional[PaymentStateMachine] = None,
        id_generator: Optional[IdGenerator] = None,
        clock: Callable[[], datetime] = utc_now,
        settlement_timeout_seconds: Optional[float] = None,
        currency: str = "CAD",
    ):
        self.payments = payments
        self.receipts = receipts
        self.settlement = settlement
        self.calculator = calculator
        self.clock = clock
        self.validator = validator or CardValidator(today=lambda: clock().date())
        self.state_machine = state_machine or PaymentStateMachine(clock=clock)
        self.id_generator = id_generator or MonotonicIdGenerator(clock=clock)
        self.receipt_generator = ReceiptGenerator(
            receipt_numbers=self.id_generator.next_receipt_number, clock=clock
        )
        self.settlement_timeout_seconds = settlement_timeout_seconds
        self.currency = currency
        self.duplicate_guard = DuplicateGuard(payments)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        payments: PaymentRepository,
        receipts: ReceiptRepository,
        settlement: Optional[SettlementGateway] = None,
    ) -> "PaymentOrchestrator":
        """Wire an orchestrator from application settings."""
        return cls(
            payments=payments,
            receipts=receipts,
            settlement=settlement
            or SimulatedSettlementGateway(
                delay_seconds=settings.settlement_delay_seconds,
                succeeds=settings.settlement_succeeds,
            ),
            calculator=MoneyCalculator(settings.pricing_config()),
            settlement_timeout_seconds=settings.settlement_timeout_seconds,
            currency=settings.currency,
        )

    def _response(self, success: bool, message: str, **fields) -> PaymentResponse:
        return PaymentResponse(
            success=success,
            message=message,
            transaction_timestamp=self.clock().isoformat(),
            **fields,
        )

    def validate_request(self, request: PaymentRequest) -> Outcome[int]:
        """
        Run every input rule and collect all failures.

        Returns the coerced street number on success. The kind is VALIDATION
        if any field rule failed, DOMAIN_RANGE if only the street number is
        out of range.
        """
        card = request.card
        card_result = self.validator.validate(
            card.card_number.get_secret_value(),
            card.name_on_card,
            card.expiry,
            card.security_code.get_secret_value(),
        )
        errors = list(card_result.errors)

        amounts = self.calculator.check_amounts(request.item_cost, request.shipping.base_cost)
        errors.extend(amounts.errors)

        if request.shipping.estimated_days < 0:
            errors.append("Estimated shipping days must not be negative")

        street_number = validate_street_number(request.address.street_number)
        if errors:
            errors.extend(street_number.errors)
            return Outcome.failure(ErrorKind.VALIDATION, *errors)
        return street_number

    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        log = logger.bind(
            correlation_id=str(uuid.uuid4()),
            user_id=request.user_id,
            item_id=request.item_id,
        )
        log.info(
            "payment_processing_started",
            shipping_type=request.shipping.shipping_type.value,
            item_cost=str(request.item_cost),
        )

        # Step 1: Duplicate check
        existing = await self.duplicate_guard.find_completed_payment(
            request.user_id, request.item_id
        )
        if existing is not None:
            return self._response(
                False,
                DUPLICATE_MESSAGE,
                payment_id=existing.payment_id,
                status=existing.status.value,
                duplicate=True,
            )

        # Step 2: Validate input
        checked = self.validate_request(request)
        if not checked.ok:
            log.warning(
                "payment_validation_failed",
                error_kind=checked.kind.value,
                errors=list(checked.errors),
            )
            return self._response(False, checked.message)

        # Step 3: Compute totals
        prices = self.calculator.calculate(
            request.item_cost, request.shipping.base_cost, request.shipping.shipping_type
        )

        # Step 4: Persist in PROCESSING
        address_input = request.address
        payment = Payment.create(
            payment_id=self.id_generator.new_payment_id(),
            user_id=request.user_id,
            item_id=request.item_id,
            prices=prices,
            shipping_type=request.shipping.shipping_type,
            estimated_shipping_days=request.shipping.estimated_days,
            address=Address(
                first_name=address_input.first_name,
                last_name=address_input.last_name,
                street=address_input.street,
                street_number=checked.value,
                province=address_input.province,
                country=address_input.country,
                postal_code=address_input.postal_code,
            ),
            card_info=CardInfo.from_card_number(
                request.card.card_number.get_secret_value(),
                request.card.name_on_card,
                request.card.expiry,
            ),
            initial_status=PaymentStatus.PROCESSING,
            now=self.clock(),
        )
        log = log.bind(payment_id=payment.payment_id)
        await self._persist(payment)
        log.info(
            "payment_record_created",
            card_brand=payment.card_info.brand.value,
            card_last_four=payment.card_info.last_four,
            total_amount=str(payment.total_amount),
        )

        # Step 5: Settlement
        result = await self._settle(payment)

        # Step 6: Transition and persist
        if not result.succeeded:
            self.state_machine.fail(payment, result.error_message or "Payment failed")
            await self._persist(payment)
            log.warning("settlement_failed", error=payment.error_message)
            return self._response(
                False,
                f"Payment failed: {payment.error_message}",
                payment_id=payment.payment_id,
                status=payment.status.value,
            )

        completed = copy.deepcopy(payment)
        self.state_machine.complete(completed, self.id_generator.new_transaction_reference())
        try:
            await self._persist(completed)
        except DuplicatePaymentError:
            # Lost the race to a concurrent request for the same user and item.
            self.state_machine.fail(payment, DUPLICATE_MESSAGE)
            await self._persist(payment)
            winner = await self.payments.find_completed(request.user_id, request.item_id)
            log.warning(
                "duplicate_payment_rejected_by_storage",
                existing_payment_id=winner.payment_id if winner else None,
            )
            return self._response(
                False,
                DUPLICATE_MESSAGE,
                payment_id=winner.payment_id if winner else payment.payment_id,
                status=PaymentStatus.COMPLETED.value if winner else payment.status.value,
                duplicate=True,
            )
        payment = completed

        # Step 7: Receipt
        receipt = await self._issue_receipt(payment)

        log.info(
            "payment_completed",
            transaction_reference=payment.transaction_reference,
            receipt_number=receipt.receipt_number,
        )

        # Step 8: Response
        return self._response(
            True,
            SUCCESS_MESSAGE,
            payment_id=payment.payment_id,
            status=payment.status.value,
            receipt=ReceiptSummary.from_receipt(receipt, currency=self.currency),
        )

    async def _settle(self, payment: Payment) -> SettlementResult:
        try:
            if self.settlement_timeout_seconds is None:
                return await self.settlement.settle(payment)
            return await asyncio.wait_for(
                self.settlement.settle(payment), timeout=self.settlement_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                "settlement_timed_out",
                payment_id=payment.payment_id,
                timeout_seconds=self.settlement_timeout_seconds,
            )
            return SettlementResult.failure(
                f"Settlement timed out after {self.settlement_timeout_seconds} seconds"
            )
        except SettlementError as e:
            logger.error("settlement_error", payment_id=payment.payment_id, error=str(e))
            return SettlementResult.failure(str(e))

    async def _issue_receipt(self, payment: Payment) -> Receipt:
        """
        Generate and store the receipt, drawing a fresh number on a collision.

        Another generator (process, worker) can hand out the same
        ``RCP-<millis>`` in the same millisecond.
        """
        for attempt in range(1, MAX_RECEIPT_ATTEMPTS + 1):
            receipt = self.receipt_generator.generate(payment)
            try:
                return await self.receipts.save(receipt)
            except ReceiptNumberConflictError:
                logger.warning(
                    "receipt_number_conflict",
                    payment_id=payment.payment_id,
                    receipt_number=receipt.receipt_number,
                    attempt=attempt,
                )
        raise PaymentError(
            f"Could not allocate a receipt number after {MAX_RECEIPT_ATTEMPTS} attempts",
            payment_id=payment.payment_id,
        )

    async def _persist(self, payment: Payment) -> None:
        await self.payments.save(payment)
        for event in payment.get_uncommitted_events():
            logger.info("payment_status_changed", **event.as_log_fields())
        payment.mark_events_committed()

    async def refund_payment(self, payment_id: str, reason: Optional[str] = None) -> Payment:
        """
        Refund a completed payment (administrative action).

        Raises:
            PaymentNotFoundError: unknown payment id
            IllegalTransitionError: payment is not COMPLETED
        """
        payment = await self.get_payment(payment_id)
        self.state_machine.refund(payment, reason)
        await self._persist(payment)
        logger.info("payment_refunded", payment_id=payment_id, reason=reason)
        return payment

    async def get_payment(self, payment_id: str) -> Payment:
        payment = await self.payments.find_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment {payment_id} not found", payment_id=payment_id)
        return payment

    async def get_receipt(self, payment_id: str) -> Optional[Receipt]:
        return await self.receipts.find_by_payment_id(payment_id)

    async def list_payments_for_user(self, user_id: int) -> List[Payment]:
        return await self.payments.find_by_user(user_id)
