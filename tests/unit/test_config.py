"""
Unit tests for Configuration module.

This module contains unit tests for the configuration settings,
validators, and computed properties.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from app.core.config import (
    ActivityFullChatPolicy,
    ConfigValidator,
    EnvironmentEnum,
    LogFormatEnum,
    LogLevelEnum,
    Settings,
    get_config_summary,
    settings,
)


class TestSettings:
    """Test cases for Settings configuration."""

    def test_default_settings(self):
        """Test default configuration values."""
        test_settings = Settings()

        assert test_settings.app_name == "Activity Chat API"
        assert test_settings.version == "1.0.0"
        assert test_settings.algorithm == "HS256"
        assert test_settings.db_pool_size == 20
        assert test_settings.chat_default_history_limit == 50
        assert test_settings.chat_max_history_limit == 200
        assert test_settings.chat_default_list_limit == 20
        assert test_settings.chat_max_message_length == 5000
        assert test_settings.chat_default_max_members == 100
        assert test_settings.activity_full_chat_policy == ActivityFullChatPolicy.newcomers
        assert test_settings.chat_destroy_deletes_activity is True
        assert test_settings.websocket_send_queue_size == 256

    def test_environment_validation(self):
        """Test environment validation with various inputs."""
        assert Settings(environment="production").environment == EnvironmentEnum.production
        assert Settings(environment="dev").environment == EnvironmentEnum.development
        assert Settings(environment="prod").environment == EnvironmentEnum.production

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="moon")

    def test_computed_properties(self):
        """Test computed properties."""
        dev_settings = Settings(environment="development")
        assert dev_settings.is_development is True
        assert dev_settings.is_production is False

        prod_settings = Settings(environment="production")
        assert prod_settings.is_production is True
        assert prod_settings.is_testing is False

        assert Settings(environment="testing").is_testing is True

    def test_secret_key_generation(self):
        """Each settings instance without a configured key gets a random one."""
        settings1 = Settings()
        settings2 = Settings()

        assert len(settings1.secret_key) > 20
        assert settings1.secret_key != settings2.secret_key

    def test_database_url_sync(self):
        test_settings = Settings(database_url="postgresql+asyncpg://u:p@db:5432/chat")

        assert test_settings.database_url_sync == "postgresql://u:p@db:5432/chat"

    def test_allowed_origins_list(self):
        test_settings = Settings(allowed_origins="https://a.example.com, https://b.example.com,")

        assert test_settings.allowed_origins_list == ["https://a.example.com", "https://b.example.com"]

    def test_enums(self):
        assert Settings(log_level="DEBUG").log_level == LogLevelEnum.DEBUG
        assert Settings(log_format="simple").log_format == LogFormatEnum.simple


class TestChatSettings:
    """Test cases for chat-specific validation."""

    @pytest.mark.parametrize("value", ["off", "newcomers", "retroactive"])
    def test_activity_full_policy_values(self, value):
        test_settings = Settings(activity_full_chat_policy=value)

        assert test_settings.activity_full_chat_policy == ActivityFullChatPolicy(value)

    def test_activity_full_policy_rejects_unknown(self):
        with pytest.raises(ValidationError):
            Settings(activity_full_chat_policy="sometimes")

    @pytest.mark.parametrize("value", [0, 100_001])
    def test_message_length_bounds(self, value):
        """Test that the message length limit is kept within sane bounds."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(chat_max_message_length=value)

        assert "Message length limit" in str(exc_info.value)

    def test_queue_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(websocket_send_queue_size=0)

    def test_default_history_cannot_exceed_max(self):
        """Test the cross-field history limit check."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(chat_default_history_limit=300, chat_max_history_limit=200)

        assert "Default history limit" in str(exc_info.value)

    def test_environment_variables_override(self, monkeypatch):
        monkeypatch.setenv("ACTIVITY_FULL_CHAT_POLICY", "retroactive")
        monkeypatch.setenv("CHAT_MAX_MESSAGE_LENGTH", "280")

        test_settings = Settings()

        assert test_settings.activity_full_chat_policy == ActivityFullChatPolicy.retroactive
        assert test_settings.chat_max_message_length == 280


class TestConfigValidator:
    """Test cases for ConfigValidator."""

    def test_validate_required_settings_success(self):
        with patch.object(settings, "database_url", "sqlite+aiosqlite:///./ok.db"):
            ConfigValidator.validate_required_settings()

    def test_validate_missing_database_url(self):
        with patch.object(settings, "database_url", None):
            with pytest.raises(ValueError) as exc_info:
                ConfigValidator.validate_required_settings()

        assert "DATABASE_URL is required" in str(exc_info.value)

    def test_production_requires_clerk_key(self):
        """Test that production refuses to start without token verification."""
        with patch.object(settings, "environment", EnvironmentEnum.production), patch.object(
            settings, "clerk_secret_key", None
        ), patch.object(settings, "database_url", "postgresql+asyncpg://db/chat"):
            with pytest.raises(ValueError) as exc_info:
                ConfigValidator.validate_required_settings()

        assert "CLERK_SECRET_KEY is required in production" in str(exc_info.value)

    def test_get_feature_status(self):
        with patch.object(settings, "activity_full_chat_policy", ActivityFullChatPolicy.off):
            status = ConfigValidator.get_feature_status()

        assert status["activity_full_chat_policy"] == ActivityFullChatPolicy.off
        assert status["destroy_deletes_activity"] is True


class TestConfigSummary:
    """Test cases for configuration summary."""

    def test_get_config_summary(self):
        with patch.object(settings, "clerk_secret_key", None):
            summary = get_config_summary()

        assert summary["app_name"] == "Activity Chat API"
        assert summary["database_configured"] is True
        assert summary["auth_configured"] is False
        assert "activity_full_chat_policy" in summary["features"]
