from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_dir() -> str:
    return str(Path.home() / ".cache" / "petspot")


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_base_url: str = Field(
        default="http://localhost:8000",
        validation_alias="PETSPOT_API_BASE_URL",
    )
    cache_dir: str = Field(
        default_factory=_default_cache_dir,
        validation_alias="PETSPOT_CACHE_DIR",
    )
    notice_duration_ms: int = Field(default=3000, validation_alias="PETSPOT_NOTICE_DURATION_MS")
    upload_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="PETSPOT_UPLOAD_TIMEOUT_SECONDS",
    )


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
