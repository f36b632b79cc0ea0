"""
Configuration Management for billsplit

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The engines are pure functions, so configuration only selects between
documented behaviors (e.g. the even split divisor). It never changes
the conservation rules.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AllocationSettings(BaseSettings):
    """Allocation engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLSPLIT_ALLOCATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    currency_symbol: str = Field(
        default="$",
        min_length=1,
        max_length=3,
        description="Symbol used in allocation messages"
    )
    default_fee_percentage: float = Field(
        default=15.0,
        ge=0.0,
        le=100.0,
        description="Percentage applied to new percentage fees (tip)"
    )


class LedgerSettings(BaseSettings):
    """Balance ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLSPLIT_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Even-split items and equal fees divide by the whole participant
    # list, not by the item's consumers. Kept as the default so balances
    # match what existing expenses have always shown.
    even_split_basis: Literal["participants", "consumers"] = Field(
        default="participants",
        description="Divisor for even-split items and equal fees"
    )
    settlement_threshold_cents: int = Field(
        default=1,
        ge=0,
        description="Balances at or below this many cents count as settled"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLSPLIT_",
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
        description="Enable debug logging"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False: human readable console)"
    )

    @field_validator('app_environment')
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()


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

    # Sub-settings are loaded lazily so a bad section does not block the rest

    @property
    def allocation(self) -> AllocationSettings:
        return AllocationSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {section_name: is_valid}, plus
    {section_name}_error entries for sections that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for section in ("allocation", "ledger", "app"):
        try:
            getattr(settings, section)
            results[section] = True
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
