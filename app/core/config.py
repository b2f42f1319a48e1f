# python
# app/core/config.py
"""Configuration settings for the activity chat backend.

Uses Pydantic BaseSettings for environment variable management.
"""
import secrets
from enum import Enum

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class ActivityFullChatPolicy(str, Enum):
    """How a full related activity gates access to its group chat."""

    off = "off"
    newcomers = "newcomers"
    retroactive = "retroactive"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="Activity Chat API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Security Settings =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Secret key for JWT encoding",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=0, description="Database max overflow connections")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Authentication (Clerk) =====
    clerk_secret_key: str | None = Field(default=None, description="Clerk secret key")
    clerk_api_url: AnyHttpUrl = Field(default="https://api.clerk.com", description="Clerk API URL")

    # ===== Chat Settings =====
    chat_default_history_limit: int = Field(default=50, description="Messages per history page")
    chat_max_history_limit: int = Field(default=200, description="Largest allowed history page")
    chat_default_list_limit: int = Field(default=20, description="Chats per inbox page")
    chat_max_message_length: int = Field(default=5000, description="Maximum message length")
    chat_default_max_members: int = Field(default=100, description="Default group size cap")
    activity_full_chat_policy: ActivityFullChatPolicy = Field(
        default=ActivityFullChatPolicy.newcomers,
        description="Access gate applied when a chat's related activity is full",
    )
    chat_destroy_deletes_activity: bool = Field(
        default=True, description="Destroying a group chat also deletes its related activity"
    )

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(self.allowed_origins, str):
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return self.allowed_origins if isinstance(self.allowed_origins, list) else []

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.json, description="Log format")

    # ===== WebSocket Configuration =====
    websocket_heartbeat_interval: int = Field(
        default=30, description="WebSocket heartbeat interval"
    )
    websocket_max_connections: int = Field(
        default=1000, description="Maximum WebSocket connections"
    )
    websocket_send_queue_size: int = Field(
        default=256, description="Outbound events buffered per connection before dropping"
    )
    websocket_max_message_size: int = Field(
        default=65536, description="Largest inbound WebSocket frame in bytes"
    )

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Development Settings =====
    reload: bool = Field(default=False, description="Auto-reload in development")
    docs_url: str = Field(default="/docs", description="API documentation URL")
    redoc_url: str = Field(default="/redoc", description="ReDoc documentation URL")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def database_url_sync(self) -> str:
        if not self.database_url:
            return ""
        return self.database_url.replace("postgresql+asyncpg://", "postgresql://")

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
        return v

    @field_validator("chat_max_message_length")
    @classmethod
    def validate_message_length(cls, v):
        if v < 1 or v > 100_000:
            raise ValueError("Message length limit must be between 1 and 100,000")
        return v

    @field_validator("websocket_send_queue_size")
    @classmethod
    def validate_queue_size(cls, v):
        if v < 1:
            raise ValueError("WebSocket send queue size must be positive")
        return v

    @model_validator(mode="after")
    def check_history_limits(self):
        if self.chat_default_history_limit > self.chat_max_history_limit:
            raise ValueError("Default history limit cannot exceed the maximum history limit")
        return self


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if settings.is_production and not settings.clerk_secret_key:
            errors.append("CLERK_SECRET_KEY is required in production")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get_feature_status() -> dict:
        return {
            "activity_full_chat_policy": settings.activity_full_chat_policy,
            "destroy_deletes_activity": settings.chat_destroy_deletes_activity,
            "environment": settings.environment,
        }


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "features": ConfigValidator.get_feature_status(),
        "database_configured": bool(settings.database_url),
        "auth_configured": bool(settings.clerk_secret_key),
    }


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
    "ActivityFullChatPolicy",
]
