"""
Domain Events - Immutable Facts About Status Changes

Every status transition of a Payment is recorded as a PaymentStatusChanged
event. The aggregate keeps them until the orchestrator has persisted the
payment and logged them, which gives an audit trail of why a payment ended
up FAILED or REFUNDED.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatusChanged(BaseModel):
    """A payment moved from one status to another (past tense, never edited)."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    payment_id: str
    sequence_number: int = Field(ge=0)
    from_status: str | None
    to_status: str
    reason: str | None = None
    occurred_at: datetime

    def as_log_fields(self) -> dict[str, object]:
        """Flatten for structured logging."""
        return {
            "event_id": self.event_id,
            "payment_id": self.payment_id,
            "sequence_number": self.sequence_number,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "reason": self.reason,
            "occurred_at": self.occurred_at.isoformat(),
        }
