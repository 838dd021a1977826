"""Configuration management for the alloctrack server."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ALLOCTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server settings
    host: str = "127.0.0.1"
    port: int = 3340
    debug: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./alloctrack.db"
    database_echo: bool = False

    # Identity header set by the authenticating proxy
    user_header: str = "X-User-ID"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
