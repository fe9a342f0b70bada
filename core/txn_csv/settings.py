"""Configuration for the transaction CSV backup API.

Loaded from ``TXN_CSV_*`` environment variables (and ``.env``).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ResponseLevel


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TXN_CSV_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_version: str = "0.1.0"
    # API Gateway 側で /csv をプレフィックスとしてルーティングしている
    root_path: str = "/csv"
    log_level: str = "INFO"
    max_import_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=0,
        description="取り込み CSV の最大バイト数（0 の場合は無制限）",
    )
    default_response_level: ResponseLevel = ResponseLevel.simple


@lru_cache
def get_settings() -> Settings:
    return Settings()
