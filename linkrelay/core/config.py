"""
LinkRelay Core Settings.

Every value can be overridden with a ``LINKRELAY_``-prefixed environment
variable or an entry in ``.env``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="LINKRELAY_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "LinkRelay"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"

    # ── PostgreSQL ───────────────────────────────────────────────────────
    db_host: str = "postgres"
    db_port: int = 5432
    db_user: str = "linkrelay"
    db_password: str = "linkrelay_secret"
    db_name: str = "linkrelay"
    # Full SQLAlchemy URL; takes precedence over the db_* parts when set
    database_url_override: Optional[str] = None
    db_echo: bool = False

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Extraction service ───────────────────────────────────────────────
    extraction_api_url: str = "https://globals.zapps.cloud/api/leech"
    extraction_api_key: Optional[str] = None
    extraction_timeout_seconds: float = 30.0

    # ── Delivery provider (Telegram Bot API) ─────────────────────────────
    telegram_api_base: str = "https://api.telegram.org"
    telegram_chat_id: Optional[str] = None
    telegram_identity_timeout_seconds: float = 15.0
    telegram_upload_timeout_seconds: float = 300.0
    # Bot API hard limit for uploads sent by bots
    delivery_max_upload_bytes: int = 50 * 1024 * 1024

    # ── Materialization ──────────────────────────────────────────────────
    download_dir: str = "downloads"
    download_timeout_seconds: float = 600.0
    download_chunk_size: int = 512 * 1024


@lru_cache()
def get_settings() -> Settings:
    return Settings()
