"""
Configuration Management for taxledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable constant (tax rate, home currency, storage location, the rate
provider endpoint) is visible in one place and validated at startup.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taxledger.models.payment import Currency


class LedgerSettings(BaseSettings):
    """Income ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    home_currency: Currency = Field(
        default=Currency.GEL,
        description="Currency all income is normalized to"
    )
    # Not user-editable: a flat rate applied to converted monthly income
    tax_rate: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description="Flat tax rate applied to monthly income"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a payment date can be without a warning"
    )


class StorageSettings(BaseSettings):
    """Record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="sql",
        description="Storage backend: 'sql' or 'memory'"
    )
    database_url: str = Field(
        default="sqlite:///taxledger.db",
        description="SQLAlchemy database URL for the 'sql' backend"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)"
    )

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Only the known backends are accepted."""
        v = v.strip().lower()
        if v not in {"sql", "memory"}:
            raise ValueError(f"Unknown storage backend: {v}. Allowed: sql, memory")
        return v


class ExchangeRateSettings(BaseSettings):
    """National Bank of Georgia exchange rate API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NBG_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://nbg.gov.ge/gw/api/ct/monetarypolicy/currencies",
        description="Base URL of the NBG currencies endpoint"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout per request"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per fetch on network errors"
    )
    retry_wait_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base of the exponential backoff between attempts"
    )
    user_agent: str = Field(
        default="taxledger/1.0",
        description="User-Agent header sent to the API"
    )


class MaintenanceSettings(BaseSettings):
    """Vehicle maintenance statistics and reminder configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MAINTENANCE_",
        extra="ignore"
    )

    # Approximate rates used only for cost statistics
    eur_to_gel: Decimal = Field(
        default=Decimal("3.0"),
        gt=0,
        description="Approximate EUR to GEL rate for cost statistics"
    )
    usd_to_gel: Decimal = Field(
        default=Decimal("2.8"),
        gt=0,
        description="Approximate USD to GEL rate for cost statistics"
    )
    mileage_warning_km: int = Field(
        default=1000,
        ge=0,
        description="Remaining km below which a service is due soon"
    )
    date_warning_days: int = Field(
        default=30,
        ge=0,
        description="Remaining days below which a service is due soon"
    )

    def rate_to_gel(self, currency: Currency) -> Decimal:
        """Approximate conversion rate for a cost currency."""
        if currency == Currency.EUR:
            return self.eur_to_gel
        if currency == Currency.USD:
            return self.usd_to_gel
        return Decimal("1")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def exchange_rates(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

    @property
    def maintenance(self) -> MaintenanceSettings:
        return MaintenanceSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups load.

    Returns a dict of {setting_name: is_valid}, with a
    '<name>_error' entry for each group that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "storage", "exchange_rates", "maintenance", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
