"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Relaychat Relay"
    relay_host: str = "0.0.0.0"
    relay_port: int = 3000
    relay_url: str = "ws://localhost:3000/"
    database_url: str = "sqlite+pysqlite:///:memory:"
    storage_dir: str = str(_BACKEND_DIR / ".storage")
    storage_slot: str = "chatData"
    reconnect_delay_seconds: float = 2.0
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    generation_timeout_seconds: int = 60
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
