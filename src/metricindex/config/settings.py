"""
Application settings using Pydantic.

Provides environment-based configuration loading with METRICINDEX_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="METRICINDEX_",
    )

    # Which registered discovery backend to build at startup
    discovery_backend: str = "memory"

    # Elasticsearch
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_index: str = "metric_metadata"
    elasticsearch_username: str | None = None
    elasticsearch_password: str | None = None

    # Maximum buckets returned by one path aggregation
    aggregation_size: int = 10000

    # HTTP client settings
    http_timeout: float = 30.0

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
