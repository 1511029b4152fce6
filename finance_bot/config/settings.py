"""
Configuration Management for Finance Bot

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BotSettings(BaseSettings):
    """Conversation and identity configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    admin_phone: str = Field(
        ...,
        description="Phone of the single administrator (any format, normalized on use)"
    )
    default_country_code: str = Field(
        default="51",
        pattern=r"^\d{1,4}$",
        description="Country prefix added to local numbers"
    )
    local_number_length: int = Field(
        default=9,
        ge=4,
        le=15,
        description="Digit count of a local phone number"
    )
    reply_to_unauthorized: bool = Field(
        default=False,
        description="Send a rejection notice to unauthorized senders instead of staying silent"
    )
    unauthorized_message: str = Field(
        default="🚫 This number is not authorized to use the bot. Contact the administrator.",
        description="Text sent to unauthorized senders when replies are enabled"
    )
    timezone: str = Field(
        default="America/Lima",
        description="Timezone used to date transactions"
    )
    ignore_group_messages: bool = Field(
        default=True,
        description="Drop messages that come from group chats"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


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
    directory_spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding the subscriber directory"
    )
    template_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="ID of the ledger template cloned for each new subscriber"
    )

    # Sheet names
    directory_sheet_name: str = Field(
        default="Subscribers",
        description="Name of the directory sheet"
    )
    movements_sheet_name: str = Field(
        default="Movements",
        description="Name of the transactions sheet inside each ledger"
    )
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the categories sheet inside each ledger"
    )
    dashboard_sheet_name: str = Field(
        default="Dashboard",
        description="Name of the summary sheet inside each ledger"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the audit sheet in the directory spreadsheet"
    )

    # Provisioning behaviour
    ledger_title_prefix: str = Field(
        default="Finances",
        description="Cloned ledgers are named '<prefix> - <display name>'"
    )
    share_with_subscriber: bool = Field(
        default=True,
        description="Grant the subscriber's email read access to the new ledger"
    )
    initialize_dashboard: bool = Field(
        default=True,
        description="Write summary formulas into the ledger dashboard sheet"
    )
    audit_enabled: bool = Field(
        default=False,
        description="Append audit events to the audit sheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the bot."
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    recent_movements_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many movements the 'recent' command lists"
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
    # (the offline console mode never touches google_sheets).

    @property
    def bot(self) -> BotSettings:
        return BotSettings()

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

    for name in ("bot", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
