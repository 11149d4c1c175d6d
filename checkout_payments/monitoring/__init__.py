"""Logging setup."""
from .logging import app_context_processor, setup_logging

__all__ = ["app_context_processor", "setup_logging"]
