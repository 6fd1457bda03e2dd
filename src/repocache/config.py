from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REPOCACHE_", env_file=".env", extra="ignore")

    app_name: str = "repocache"
    env: str = "dev"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./repocache.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = Field(default=False, validation_alias="DB_ECHO")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Entity cache
    cache_ttl: int = Field(default=3600, validation_alias="CACHE_TTL")
    cache_enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")
    # Caching is switched off entirely in this environment (local debugging)
    cache_disabled_env: str = "development"
    # Sort condition fields before deriving keys; off keeps keys compatible
    # with caches written by earlier deployments
    cache_sort_fields: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def caching_allowed(self) -> bool:
        """Whether services built from these settings should use the cache."""
        return self.cache_enabled and self.env != self.cache_disabled_env


settings = Settings()
