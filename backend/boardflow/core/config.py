"""Application configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
All sensitive values should be provided via environment variables.
"""

from functools import lru_cache
from typing import Any

from pydantic import PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(v: Any, default: list[str]) -> list[str]:
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    if isinstance(v, list):
        return v
    return default


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "BoardFlow Automation API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or list."""
        return _split_csv(v, ["http://localhost:3000"])

    # Database
    DATABASE_URL: PostgresDsn | None = None
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30

    # Automation engine
    AUTOMATION_MAX_CHAIN_DEPTH: int = 5
    AUTOMATION_NODE_TIMEOUT_SECONDS: float = 30.0
    AUTOMATION_EXECUTION_BUDGET_SECONDS: float = 120.0
    AUTOMATION_MAX_PARALLEL_NODES: int = 10
    AUTOMATION_VERSION_MAX_RETRIES: int = 5
    AUTOMATION_RUN_HISTORY_LIMIT: int = 50
    # Dotted paths of extra ActionHandler classes, e.g. "acme.handlers:SlackHandler"
    AUTOMATION_ACTION_HANDLERS: list[str] = []
    # Keys whose values are masked in persisted run logs and trigger payloads
    AUTOMATION_REDACTED_KEYS: list[str] = [
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
        "private_key",
        "webhook_url",
    ]

    @field_validator(
        "AUTOMATION_ACTION_HANDLERS", "AUTOMATION_REDACTED_KEYS", mode="before"
    )
    @classmethod
    def parse_string_lists(cls, v: Any) -> list[str]:
        """Parse list settings from comma-separated string or list."""
        return _split_csv(v, [])

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str | None = None  # Defaults to logs/app.log
    LOG_JSON_FORMAT: bool = True  # Use JSON format for file logs
    LOG_SENSITIVE_FILTER: bool = True  # Filter sensitive data from logs


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
