"""
Configuration Management for Fintrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DynamoDBSettings(BaseSettings):
    """DynamoDB table configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DYNAMODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    table_name: str = Field(
        default="fintrack-transactions",
        min_length=3,
        max_length=255,
        description="Name of the single table holding all entities"
    )
    region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("DYNAMODB_REGION", "AWS_REGION"),
        description="AWS region of the table"
    )
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Override endpoint (DynamoDB Local, e.g. http://localhost:8000)"
    )
    create_table_if_missing: bool = Field(
        default=False,
        description="Create the table and its indexes on startup if absent"
    )

    # botocore client timeouts
    connect_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Connection timeout in seconds"
    )
    read_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Read timeout in seconds"
    )

    @field_validator('endpoint_url')
    @classmethod
    def empty_endpoint_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty DYNAMODB_ENDPOINT_URL as unset."""
        return v or None


class RepositorySettings(BaseSettings):
    """Limits and retry policy for the ledger repository."""

    model_config = SettingsConfigDict(
        env_prefix="REPOSITORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_query_limit: int = Field(
        default=1000,
        ge=1,
        description="Upper bound on items returned by any list operation"
    )
    default_page_size: int = Field(
        default=50,
        ge=1,
        description="Page size when the caller does not pass a limit"
    )

    # Batch loading
    batch_size: int = Field(
        default=25,
        ge=1,
        le=25,
        description="Items per batch write request (store limit is 25)"
    )
    batch_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per chunk before the chunk is reported as failed"
    )
    batch_backoff_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Linear backoff step between chunk attempts"
    )

    id_index_enabled: bool = Field(
        default=True,
        description="Look transactions up through the by-id index before scanning"
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
    storage_backend: Literal["dynamodb", "memory"] = Field(
        default="dynamodb",
        description="Which key/value store backs the repository"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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
    def dynamodb(self) -> DynamoDBSettings:
        return DynamoDBSettings()

    @property
    def repository(self) -> RepositorySettings:
        return RepositorySettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    `<setting_name>_error` entry for every failure.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("dynamodb", "repository", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
