"""Application configuration management."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    DEFAULT_PAGE_SIZE,
    EXPLORE_EPSILON,
    MAX_PAGE_SIZE,
    PREFERENCE_HALF_LIFE_DAYS,
    RANK_JITTER,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "catalog-feed"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # Preference / view storage
    # -------------------------------------------------------------------------
    storage_backend: Literal["memory", "file", "redis"] = "memory"
    storage_dir: Path = Path(".feed-state")

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Catalog API Integration
    # -------------------------------------------------------------------------
    catalog_api_base_url: str = "http://localhost:8080"
    catalog_api_timeout: int = 30
    catalog_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    # -------------------------------------------------------------------------
    # Ranking Settings
    # -------------------------------------------------------------------------
    explore_epsilon: float = Field(default=EXPLORE_EPSILON, ge=0.0, le=1.0)
    rank_jitter: float = Field(default=RANK_JITTER, ge=0.0)
    preference_half_life_days: float = Field(default=PREFERENCE_HALF_LIFE_DAYS, gt=0.0)
    dedupe_prefer_cheapest: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
