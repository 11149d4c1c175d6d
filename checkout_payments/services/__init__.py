"""Checkout services: duplicate guard and payment orchestration."""
from .duplicate_guard import DuplicateGuard
from .orchestrator import PaymentOrchestrator

__all__ = [
    "DuplicateGuard",
    "PaymentOrchestrator",
]
