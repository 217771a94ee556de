"""
Configuration Management for the Construction Budget Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Note the difference from the *settings registry* (category ceilings,
proposer quotas, staff roster): that is business data stored alongside
the records and edited by operators. This module only configures the
process itself.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    projects_sheet_name: str = Field(
        default="Projects",
        description="Name of the sheet for project-category lines"
    )
    cases_sheet_name: str = Field(
        default="Cases",
        description="Name of the sheet for cases (tenders)"
    )
    payments_sheet_name: str = Field(
        default="Payments",
        description="Name of the sheet for payments"
    )
    settings_sheet_name: str = Field(
        default="Settings",
        description="Name of the sheet holding the settings registry"
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


class CloudinarySettings(BaseSettings):
    """Cloudinary photo storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="budget_ledger",
        description="Folder that project photos are uploaded into"
    )


class RemoteApiSettings(BaseSettings):
    """Remote tagged-action endpoint (used by LedgerClient)."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_API_",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="URL accepting POSTed {action: ...} payloads"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout per call"
    )


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

    # Backends
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record store implementation"
    )
    photo_backend: str = Field(
        default="inline",
        pattern="^(inline|cloudinary)$",
        description="Where photo attachments are persisted"
    )

    # Reconciliation policy
    strict_grouping: bool = Field(
        default=False,
        description="Reject project groups whose lines disagree on shared fields"
    )
    rollback_partial_batches: bool = Field(
        default=True,
        description="Undo already-written lines when a batch submission fails part-way"
    )

    # Photo upload limits
    max_photo_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum size of one photo attachment in MB"
    )
    supported_photo_types: str = Field(
        default="image/jpeg,image/png,image/webp,image/heic",
        description="Comma-separated list of accepted photo MIME types"
    )

    @property
    def supported_photo_types_list(self) -> list[str]:
        """Get supported MIME types as a list."""
        return [t.strip().lower() for t in self.supported_photo_types.split(",")]

    @property
    def max_photo_size_bytes(self) -> int:
        return self.max_photo_size_mb * 1024 * 1024


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
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def remote_api(self) -> RemoteApiSettings:
        return RemoteApiSettings()

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

    for name in ("google_sheets", "cloudinary", "remote_api", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
