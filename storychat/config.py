"""
Configuration and settings for the storychat service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Key-value persistence: SQL (Postgres expected) or Redis
    database_url: Optional[str] = Field(default=None)
    redis_url: Optional[str] = Field(default=None)
    redis_key_prefix: str = Field(default="storychat:")

    # Hosted identity service (GoTrue-compatible REST API)
    auth_url: Optional[str] = Field(default=None)
    auth_service_key: Optional[str] = Field(default=None)
    auth_timeout_seconds: float = Field(default=10.0)

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    avatars_bucket: str = Field(default="storychat-avatars")
    stories_bucket: str = Field(default="storychat-stories")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "STORYCHAT_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Product behaviour
    story_ttl_hours: int = Field(default=24, ge=1)
    deleted_message_text: str = Field(default="This message was deleted")
    message_poll_seconds: float = Field(default=2.0)
    story_poll_seconds: float = Field(default=10.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
