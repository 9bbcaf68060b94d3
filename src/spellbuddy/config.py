"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables with SPELLBUDDY_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="SPELLBUDDY_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///./spellbuddy.db"
    redis_url: str = ""
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Streaks ---
    # Calendar days are cut at midnight in this zone.
    streak_timezone: str = "UTC"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
