"""Configuration management for the playlist engine and service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Engine Configuration
    allowable_excess_duration: float = Field(0.0, ge=0)  # seconds over EXT-X-TARGETDURATION

    # Service Configuration
    max_playlist_bytes: int = 4 * 1024 * 1024
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"


# Global settings instance
settings = Settings()
