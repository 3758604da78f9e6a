"""
Configuration Management for the Finance Tracker

Uses pydantic-settings for type-safe configuration from environment
variables and an optional .env file. All configuration lives here.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Where the ledger snapshot is persisted."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Persistence backend for transactions and accounts"
    )
    data_dir: str = Field(
        default="./data",
        description="Directory holding transactions.json and accounts.json"
    )

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser().resolve()


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
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    accounts_sheet_name: str = Field(
        default="Accounts",
        description="Name of the sheet for accounts"
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

    # Import
    csv_delimiter: str = Field(
        default=",",
        min_length=1,
        max_length=1,
        description="Field delimiter for csv/text imports"
    )
    max_import_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum import file size in MB"
    )
    supported_import_formats: str = Field(
        default="csv,ynab,text",
        description="Comma-separated list of accepted import formats"
    )

    # Ledger
    strict_account_references: bool = Field(
        default=False,
        description=(
            "Reject mutations that reference an unknown account instead of "
            "dropping the balance change"
        )
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_import_formats.split(",") if fmt.strip()]

    @property
    def max_import_size_bytes(self) -> int:
        """Get max import size in bytes."""
        return self.max_import_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are loaded lazily so Google Sheets can stay unconfigured
    when another backend is used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {section_name: is_valid}, plus "<section>_error"
    entries describing failures. Google Sheets is only checked when it is
    the configured backend.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    def check(name: str) -> None:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    check("app")
    check("storage")
    if results["storage"] and settings.storage.backend == "google_sheets":
        check("google_sheets")

    return results
