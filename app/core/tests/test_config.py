"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from app.core.config import Settings, get_settings


def test_settings_has_defaults():
    """Settings should have sensible defaults."""
    settings = Settings()

    assert settings.app_name == "LupitaAnalytics"
    assert settings.app_env == "development"
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"
    assert settings.api_port == 8123
    assert settings.database_url.startswith("sqlite+aiosqlite:///")


def test_portal_defaults():
    """Portal settings default to the production tenant and both stores."""
    settings = Settings(_env_file=None)

    assert settings.zsbms_base_url == "https://515449741.zsbmspro.com"
    assert settings.zsbms_store_ids == ["35", "2"]
    assert settings.zsbms_request_delay_seconds == 1.0
    assert settings.has_portal_credentials is False


def test_has_portal_credentials_requires_both_fields():
    assert Settings(zsbms_username="gerente").has_portal_credentials is False
    assert Settings(zsbms_username="gerente", zsbms_password="x").has_portal_credentials is True


def test_portal_url_trailing_slash_is_stripped():
    settings = Settings(zsbms_base_url="https://demo.zsbmspro.com/")
    assert settings.zsbms_base_url == "https://demo.zsbmspro.com"


def test_portal_url_must_be_http():
    with pytest.raises(ValidationError, match="Invalid portal URL"):
        Settings(zsbms_base_url="ftp://demo.zsbmspro.com")


def test_settings_is_development_property():
    """is_development should return True for development env."""
    settings = Settings(app_env="development")
    assert settings.is_development is True

    assert Settings(app_env="production").is_development is False


def test_get_settings_returns_singleton():
    """get_settings should return cached singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2


def test_settings_from_environment(monkeypatch):
    """Settings should load from environment variables."""
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("ZSBMS_USERNAME", "gerente")
    monkeypatch.setenv("ZSBMS_STORE_IDS", '["35"]')

    # Create new settings instance (not cached)
    settings = Settings()

    assert settings.app_name == "TestApp"
    assert settings.debug is True
    assert settings.zsbms_username == "gerente"
    assert settings.zsbms_store_ids == ["35"]
