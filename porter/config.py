"""Configuration management for the dispatch service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(default="porter", description="Namespace for all Redis keys")

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Lifecycle
    strict_transitions: bool = Field(
        default=False,
        description="Reject status changes that skip steps of the delivery lifecycle",
    )
    code_generation_attempts: int = Field(
        default=5, description="Retries when a generated human code collides"
    )

    # Listing
    default_page_size: int = Field(default=20, description="Default page size")
    max_page_size: int = Field(default=200, description="Upper bound for page size")
    job_board_limit: int = Field(
        default=50, description="Pending orders shown to drivers looking for work"
    )

    # Real-time
    websocket_queue_size: int = Field(
        default=256, description="Outbound frames buffered per WebSocket before dropping"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
