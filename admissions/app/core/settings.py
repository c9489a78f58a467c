"""Application settings loaded from ``ADMISSIONS_*`` environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ADMISSIONS_", extra="ignore")

    app_name: str = "Admissions Pipeline"
    api_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    secret_key: str = Field(default="CHANGE_ME", min_length=1)
    access_token_expire_minutes: int = Field(default=30, ge=1)
    database_url: str = "sqlite:///./admissions.db"
    sqlite_busy_timeout_seconds: int = Field(default=30, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    default_tour_capacity: int = Field(default=5, ge=1)
    default_page_size: int = Field(default=50, ge=1, le=200)
    default_tour_page_size: int = Field(default=25, ge=1, le=200)
    dev_tenant_id: str = "00000000-0000-4000-8000-000000000001"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings instance."""
    return Settings()
