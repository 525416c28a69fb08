"""Runtime configuration for shot-core."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHOT_CORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "shot-core"
    debug: bool = False
    log_level: str = "INFO"

    # Async URL used by the engine; the sync variant feeds Alembic.
    database_url: str = "sqlite+aiosqlite:///./shot_core.db"

    @property
    def database_url_sync(self) -> str:
        return (
            self.database_url
            .replace("+aiosqlite", "")
            .replace("+asyncpg", "")
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
