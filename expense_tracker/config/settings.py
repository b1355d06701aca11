"""
Configuration Management for Voice Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParserSettings(BaseSettings):
    """External expense-parsing endpoint configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="PARSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    endpoint_url: str = Field(
        ...,
        description="URL of the webhook that parses free text / audio into an expense"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout for one parse round-trip"
    )
    
    # Context metadata sent with every request
    source_tag: str = Field(
        default="bolt",
        description="Value of the 'source' field in the request body"
    )
    device_tag: str = Field(
        default="web",
        description="Value of the 'device' field in the request body"
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone the parser uses to resolve relative dates"
    )
    audio_format: str = Field(
        default="webm",
        description="Audio container format reported with voice input"
    )


class CaptureSettings(BaseSettings):
    """Microphone capture configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="CAPTURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    max_recording_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Recording is stopped automatically after this long"
    )


class DashboardSettings(BaseSettings):
    """Dashboard query and refresh configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="DASHBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    refresh_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How often the dashboard re-fetches expenses"
    )
    query_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum number of expenses loaded per fetch"
    )
    default_window: str = Field(
        default="30",
        pattern="^(7|30|90|all)$",
        description="Window selected when the dashboard is opened"
    )
    top_category_count: int = Field(
        default=5,
        ge=1,
        description="Number of categories shown in the top categories chart"
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
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
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
    
    # Review policy
    review_confidence_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Parses scored below this are flagged for review"
    )
    default_currency: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="Currency used when the parser does not report one"
    )
    
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which expense store to use"
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
    
    # Sub-settings are loaded lazily to allow partial configuration
    
    @property
    def parser(self) -> ParserSettings:
        return ParserSettings()
    
    @property
    def capture(self) -> CaptureSettings:
        return CaptureSettings()
    
    @property
    def dashboard(self) -> DashboardSettings:
        return DashboardSettings()
    
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
    
    sections = ["parser", "capture", "dashboard", "google_sheets", "app"]
    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
