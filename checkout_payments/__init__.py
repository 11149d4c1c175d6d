"""
Checkout Payments - One-shot e-commerce payment processing

This package handles a single checkout:
1. Card validation (Luhn, expiry, CVV, name)
2. Exact monetary totals (item + shipping + tax) with half-up rounding
3. Duplicate-charge prevention per (user, item)
4. Payment status life-cycle with simulated settlement
5. Receipt generation for completed payments

Transport bindings are left to the caller; this package exposes pure
computation plus a small orchestrator over a persistence port.
"""

__version__ = "1.0.0"
