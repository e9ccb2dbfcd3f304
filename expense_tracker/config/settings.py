"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The variable names match the ones the deployed tracker already uses
(SPREADSHEET_ID, GOOGLE_CLIENT_EMAIL, GOOGLE_PRIVATE_KEY), so an existing
.env keeps working unchanged.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="ID of the Google Sheets spreadsheet used as the database"
    )

    # Credential sources, tried in this order
    google_client_email: Optional[str] = Field(
        default=None,
        description="Service account email"
    )
    google_private_key: Optional[str] = Field(
        default=None,
        description="Service account private key (newlines may be escaped as \\n)"
    )
    google_service_account_json: Optional[str] = Field(
        default=None,
        description="Whole service account key file as a JSON string"
    )
    google_credentials_path: str = Field(
        default="credentials.json",
        description="Path to a local service account key file"
    )

    # Tab holding savings goals. Transactions always live in the first tab.
    savings_sheet_name: str = Field(
        default="Sheet2",
        min_length=1,
        description="Title of the savings goals tab"
    )

    value_input_option: Literal["USER_ENTERED", "RAW"] = Field(
        default="USER_ENTERED",
        description="How Sheets interprets written values"
    )
    timestamp_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime format for created/updated timestamps"
    )

    @field_validator("spreadsheet_id")
    @classmethod
    def strip_spreadsheet_id(cls, v: str) -> str:
        """Accept a pasted spreadsheet URL as well as the bare ID."""
        v = v.strip()
        if "/spreadsheets/d/" in v:
            v = v.split("/spreadsheets/d/", 1)[1].split("/", 1)[0]
        return v

    @property
    def has_inline_key(self) -> bool:
        return bool(self.google_client_email and self.google_private_key)


class AppSettings(BaseSettings):
    """
    HTTP application settings.

    Variables are prefixed with APP_ (APP_HOST, APP_LOG_LEVEL, ...). The
    port is also read from a bare PORT, which hosting platforms set.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Interface the API server binds to"
    )
    port: int = Field(
        default=5000,
        validation_alias=AliasChoices("APP_PORT", "PORT"),
        ge=1,
        le=65535,
        description="Port the API server listens on"
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)"
    )
    legacy_api_prefix: str = Field(
        default="/.netlify/functions/api",
        description="Second mount point for the API router; empty to disable"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


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

    # Loaded lazily so the API can start (and report) without Sheets config

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

    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for each group that failed to load.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValidationError as e:
            # Inputs are left out: a rejected value may be a private key
            results[name] = False
            results[f"{name}_error"] = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or name}: {error['msg']}"
                for error in e.errors(include_input=False)
            )

    return results
