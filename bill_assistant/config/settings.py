"""
Configuration Management for Bill Assistant

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary blob storage configuration."""

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
        default="invoice",
        description="Root folder for uploaded receipts"
    )


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
    files_sheet_name: str = Field(
        default="Files",
        description="Name of the sheet for uploaded file records"
    )
    bills_sheet_name: str = Field(
        default="Bills",
        description="Name of the sheet for bills"
    )
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the sheet for bill categories"
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


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    attachment_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for downloading an attachment before sending it to the model"
    )


class RedisSettings(BaseSettings):
    """Redis connection used by the conversation context store."""

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore"
    )

    url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    key_prefix: str = Field(
        default="chat:context:",
        description="Prefix for conversation window keys"
    )
    max_connections: int = Field(
        default=10,
        ge=1,
    )
    socket_timeout: float = Field(
        default=5.0,
        gt=0,
    )


class ChatContextSettings(BaseSettings):
    """
    Rolling conversation window configuration.

    The window stores more rounds than it replays so that a short
    burst of messages does not immediately push older context out.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CONTEXT_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|redis)$",
        description="Where conversation windows live"
    )
    max_stored_rounds: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Rounds kept per conversation (oldest evicted first)"
    )
    max_replay_rounds: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Rounds injected ahead of a new text message"
    )
    ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Idle time after which a window disappears"
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

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    allowed_image_types: str = Field(
        default="jpg,jpeg,png,gif,bmp",
        description="Comma-separated list of accepted image extensions"
    )
    allowed_document_types: str = Field(
        default="pdf,doc,docx,xls,xlsx",
        description="Comma-separated list of accepted document extensions"
    )

    # Background extraction
    extraction_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worker threads for receipt extraction"
    )

    default_currency: str = Field(
        default="CNY",
        description="Currency assumed when a receipt does not show one"
    )

    @property
    def allowed_image_types_list(self) -> list[str]:
        """Get accepted image extensions as a list."""
        return _split_csv(self.allowed_image_types)

    @property
    def allowed_document_types_list(self) -> list[str]:
        """Get accepted document extensions as a list."""
        return _split_csv(self.allowed_document_types)

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


def _split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


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
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def redis(self) -> RedisSettings:
        return RedisSettings()

    @property
    def chat_context(self) -> ChatContextSettings:
        return ChatContextSettings()

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

    for name in ("cloudinary", "google_sheets", "gemini", "redis", "chat_context", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
