"""
Identifier generation.

Receipt numbers are ``RCP-<epoch millis>``. Two receipts issued in the same
millisecond must still differ, so the generator never hands out a value
less than or equal to the previous one.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Protocol

from checkout_payments.domain.receipts import RECEIPT_PREFIX


class IdGenerator(Protocol):
    """Interface for ID sources (injected so tests stay deterministic)."""

    def new_payment_id(self) -> str:
        ...

    def new_transaction_reference(self) -> str:
        ...

    def next_receipt_number(self) -> str:
        ...


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class MonotonicIdGenerator:
    """
    Clock + sequence based generator.

    Args:
        clock: source of "now"; receipt numbers derive from its millis
        random_source: source of opaque tokens for payment ids and references
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = system_clock,
        random_source: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._clock = clock
        self._random = random_source
        self._last_millis = 0
        self._lock = threading.Lock()

    def new_payment_id(self) -> str:
        return str(self._random())

    def new_transaction_reference(self) -> str:
        return f"txn_{self._random().hex}"

    def next_millis(self) -> int:
        now_millis = int(self._clock().timestamp() * 1000)
        with self._lock:
            self._last_millis = max(now_millis, self._last_millis + 1)
            return self._last_millis

    def next_receipt_number(self) -> str:
        return f"{RECEIPT_PREFIX}{self.next_millis()}"
