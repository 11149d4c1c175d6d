"""
Tests for settings and logging setup.
"""

import logging
from decimal import Decimal

import pytest
import structlog
from pydantic import ValidationError

from checkout_payments.config import Settings, get_settings
from checkout_payments.domain.pricing import PricingConfig
from checkout_payments.monitoring.logging import app_context_processor, setup_logging


class TestSettings:
    @pytest.mark.unit
    def test_defaults(self):
        settings = Settings()

        assert settings.tax_rate == Decimal("0.13")
        assert settings.expedited_surcharge == Decimal("10.00")
        assert settings.settlement_delay_seconds == 2.0
        assert settings.settlement_timeout_seconds is None
        assert settings.is_production is False

    @pytest.mark.unit
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CHECKOUT_TAX_RATE", "0.05")
        monkeypatch.setenv("CHECKOUT_LOG_LEVEL", "debug")
        monkeypatch.setenv("CHECKOUT_APP_ENV", "Production")

        settings = Settings()

        assert settings.tax_rate == Decimal("0.05")
        assert settings.log_level == "DEBUG"
        assert settings.is_production is True

    @pytest.mark.unit
    def test_pricing_config(self):
        config = Settings(tax_rate="0.15", expedited_surcharge="7.5").pricing_config()

        assert config == PricingConfig(tax_rate=Decimal("0.15"), expedited_surcharge=Decimal("7.50"))

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "overrides",
        [{"log_level": "VERBOSE"}, {"tax_rate": "1.5"}, {"settlement_timeout_seconds": 0}],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            Settings(**overrides)

    @pytest.mark.unit
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_structlog(self):
        yield
        structlog.reset_defaults()

    @pytest.mark.unit
    def test_app_context_added(self):
        add_app_context = app_context_processor(Settings(app_name="storefront", app_env="staging"))

        event = add_app_context(None, "info", {"event": "payment_completed"})

        assert event["app_name"] == "storefront"
        assert event["app_env"] == "staging"

    @pytest.mark.unit
    def test_setup_logging_uses_given_settings(self):
        setup_logging(Settings(app_name="storefront", app_env="staging"))

        processors = structlog.get_config()["processors"]
        add_app_context = next(
            p for p in processors if getattr(p, "__name__", "") == "add_app_context"
        )
        event = add_app_context(None, "info", {"event": "payment_completed"})

        assert event["app_name"] == "storefront"
        assert event["app_env"] == "staging"

    @pytest.mark.unit
    def test_setup_logging_sets_levels(self):
        setup_logging(Settings(log_level="WARNING", database_echo=True))

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
