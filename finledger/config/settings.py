"""
Configuration Management for finledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Local ledger storage and display configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".finledger"),
        description="Directory holding the local key-value JSON files"
    )
    state_key: str = Field(
        default="financeState_v3",
        min_length=1,
        description="Key under which the ledger state blob is stored"
    )
    autosave_interval_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Autosave timer interval (0 disables the timer)"
    )

    # Debt scheduling
    due_soon_days: int = Field(
        default=7,
        ge=0,
        description="Open debts due within this many days are 'due soon'"
    )
    upcoming_debts_limit: int = Field(
        default=6,
        ge=1,
        description="How many open debts the upcoming list shows"
    )

    # Reports
    report_top_categories: int = Field(
        default=5,
        ge=1,
        description="Number of categories ranked in a report"
    )
    chart_top_categories: int = Field(
        default=6,
        ge=1,
        description="Number of categories shown in the expense chart"
    )
    timeline_days: int = Field(
        default=7,
        ge=1,
        le=366,
        description="Days covered by the income/expense timeline"
    )
    default_category: str = Field(
        default="Other",
        min_length=1,
        description="Category used when none is given"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration for shared groups."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    audit_sheet_name: str = Field(
        default="audit_log",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Money display
    currency_code: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    currency_symbol: str = Field(
        default="R$",
        description="Symbol printed before amounts"
    )

    # PIX payload identity
    merchant_name: str = Field(
        default="FINLEDGER",
        max_length=25,
        description="Receiver name written into PIX payloads"
    )
    merchant_city: str = Field(
        default="SAO PAULO",
        max_length=15,
        description="Receiver city written into PIX payloads"
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

    # Sub-settings are loaded lazily so the ledger works without
    # any Google configuration.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
