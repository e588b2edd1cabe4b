"""Environment-driven application configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ASYNC_DRIVER_PREFIXES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(alias="DATABASE_URL")
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")
    admin_api_token: str | None = Field(default=None, alias="ADMIN_API_TOKEN")
    qualification_interval_seconds: int = Field(default=0, alias="QUALIFICATION_INTERVAL_SECONDS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8080, alias="APP_PORT")
    base_url: str = Field(default="http://localhost:8080", alias="BASE_URL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def use_async_driver(cls, value: str) -> str:
        """Rewrite plain driver URLs to their asyncio equivalents."""

        for prefix, replacement in _ASYNC_DRIVER_PREFIXES.items():
            if value.startswith(prefix):
                return replacement + value[len(prefix) :]
        return value

    @field_validator("cron_secret", "admin_api_token", mode="before")
    @classmethod
    def blank_secret_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("qualification_interval_seconds")
    @classmethod
    def validate_interval(cls, value: int) -> int:
        if value < 0:
            raise ValueError("QUALIFICATION_INTERVAL_SECONDS must be >= 0")
        return value

    @property
    def scheduler_enabled(self) -> bool:
        return self.qualification_interval_seconds > 0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
