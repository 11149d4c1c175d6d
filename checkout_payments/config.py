"""Application settings using Pydantic for environment-based configuration."""
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from checkout_payments.domain.pricing import PricingConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables (``CHECKOUT_*``)."""

    # Application Configuration
    app_name: str = Field(default="checkout-payments", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Pricing
    tax_rate: Decimal = Field(
        default=Decimal("0.13"), ge=0, le=1, description="Tax (HST) rate applied to item + shipping"
    )
    expedited_surcharge: Decimal = Field(
        default=Decimal("10.00"), ge=0, description="Flat fee added to expedited shipping"
    )
    currency: str = Field(
        default="CAD", min_length=3, max_length=3, description="Currency code shown on receipt summaries"
    )

    # Settlement (simulated)
    settlement_delay_seconds: float = Field(
        default=2.0, ge=0, description="Artificial delay of the simulated settlement step"
    )
    settlement_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Cancel settlement after this many seconds (disabled if unset)"
    )
    settlement_succeeds: bool = Field(
        default=True, description="Fixed outcome of the simulated settlement step"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./payments.db", description="SQLAlchemy async connection URL"
    )
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()

    def pricing_config(self) -> PricingConfig:
        """Immutable pricing parameters handed to the MoneyCalculator."""
        return PricingConfig(
            tax_rate=self.tax_rate,
            expedited_surcharge=self.expedited_surcharge,
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
