"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite:///./schedules.db", alias="DATABASE_URL")
    app_title: str = Field(default="Schedule Admin", alias="APP_TITLE")
    seed_reference_data: bool = Field(default=True, alias="SEED_REFERENCE_DATA")
    strict_references: bool = Field(default=False, alias="STRICT_SCHEDULE_REFERENCES")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
