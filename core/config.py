"""
Application configuration management.

Uses pydantic-settings for type-safe environment variable parsing.
All configuration is centralized here to support dependency injection
and avoid scattering os.getenv() calls throughout the codebase.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with validation and type coercion.

    Values are loaded from environment variables or .env file.
    All fields have sensible defaults for local development.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cosmos DB account (defaults point at the local emulator)
    cosmos_endpoint: str = "https://localhost:8081/"
    cosmos_key: str = Field(default="", repr=False)
    cosmos_database: str = "durabletask"
    cosmos_collection: str = "taskhub"
    cosmos_preferred_locations: list[str] = Field(default_factory=list)
    cosmos_request_timeout_seconds: float = 60.0
    cosmos_concurrent_update_retry_count: int = -1  # -1: provider default
    cosmos_query_max_item_count: int = -1

    # Task hub
    cosmos_partition_key: str = "instanceId"
    cosmos_create_if_missing: bool = False

    # Dispatchers
    orchestration_dispatcher_count: int = 1
    max_concurrent_orchestrations: int = 100
    activity_dispatcher_count: int = 1
    max_concurrent_activities: int = 10

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    debug: bool = True
    log_level: str = "INFO"

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings singleton.

    Use this function to get settings instance throughout the application.
    The @lru_cache ensures we only parse environment once.
    """
    return Settings()


# Convenience export for direct import
settings = get_settings()
