"""Application configuration via Pydantic Settings v2."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "LupitaAnalytics"
    app_env: Literal["development", "testing", "staging", "production"] = "development"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/lupita.db"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # API
    api_host: str = "0.0.0.0"  # noqa: S104
    api_port: int = 8123

    # Ingest
    ingest_inbox_dir: str = "./data/inbox"
    ingest_max_errors_logged: int = 200

    # ZSBMS portal
    zsbms_base_url: str = "https://515449741.zsbmspro.com"
    zsbms_username: str = ""
    zsbms_password: str = ""
    zsbms_store_ids: list[str] = ["35", "2"]
    zsbms_request_delay_seconds: float = 1.0
    zsbms_timeout_seconds: float = 120.0
    zsbms_user_agent: str = "LupitaDashboard/1.0"

    # Analytics
    analytics_max_rows: int = 10000
    analytics_max_date_range_days: int = 730

    # Sync
    sync_history_limit: int = 20

    @field_validator("zsbms_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the portal base URL so paths can be appended directly.

        Args:
            v: Base URL string.

        Returns:
            URL without a trailing slash.

        Raises:
            ValueError: If the URL is not http(s).
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid portal URL '{v}'. Expected an http(s) URL.")
        return v.rstrip("/")

    @property
    def has_portal_credentials(self) -> bool:
        """Check if portal credentials are configured."""
        return bool(self.zsbms_username and self.zsbms_password)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
