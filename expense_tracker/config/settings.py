"""
Configuration Management for the Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, including the
bounds of the reimbursement matcher. The matcher bounds are the only thing
keeping worst-case search latency in check, so they are tunable from the
environment rather than hard-coded in the engine.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from expense_tracker.models.reimbursement import MatchLimits


class MatchingSettings(BaseSettings):
    """Reimbursement matching engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_total_matches: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum number of matches returned by one search"
    )
    max_combinations_per_amount: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Maximum concrete expense picks generated per amount pattern"
    )
    max_combination_size: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum number of expenses in a single match"
    )
    default_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Default allowed difference between a match total and the target"
    )
    exact_match_epsilon: Decimal = Field(
        default=Decimal("0.001"),
        gt=0,
        description="Difference below which a match counts as exact"
    )

    def to_limits(self) -> MatchLimits:
        """Build the engine limits from these settings."""
        return MatchLimits(
            max_total_matches=self.max_total_matches,
            max_combinations_per_amount=self.max_combinations_per_amount,
            max_combination_size=self.max_combination_size,
            exact_match_epsilon=self.exact_match_epsilon,
        )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
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

    # Presentation
    currency_symbol: str = Field(
        default="$",
        max_length=3,
        description="Symbol used when formatting amounts"
    )

    # Single-user deployments do not have a login screen
    default_user_id: str = Field(
        default="local-user",
        min_length=1,
        description="User whose expenses are shown when no login is configured"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def matching(self) -> MatchingSettings:
        return MatchingSettings()

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
        _ = settings.matching
        results["matching"] = True
    except Exception as e:
        results["matching"] = False
        results["matching_error"] = str(e)

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
