# manifest_bot/config.py
"""
Manifest Bot configuration
--------------------------

* **pydantic-settings** (Pydantic v2).
* Values come from `.env` or the environment.
* Safe defaults let the tests and CI run without real secrets; a channel is
  only started when its credentials are present.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # ───────────────────────── Telegram ────────────────────────────────
    telegram_token: str = Field("", alias="TELEGRAM_BOT_TOKEN")

    # ───────────────────────── Database ────────────────────────────────
    database_url: str = Field(
        "sqlite+aiosqlite:///./manifest.db", alias="DATABASE_URL"
    )

    # ───────────────────────── WhatsApp Cloud API ──────────────────────
    whatsapp_token: str = Field("", alias="WHATSAPP_TOKEN")
    whatsapp_phone_id: str = Field("", alias="WHATSAPP_PHONE_ID")
    whatsapp_verify_token: str = Field("", alias="WHATSAPP_VERIFY_TOKEN")
    whatsapp_api_url: str = Field(
        "https://graph.facebook.com/v19.0", alias="WHATSAPP_API_URL"
    )
    webhook_host: str = Field("0.0.0.0", alias="WEBHOOK_HOST")
    webhook_port: int = Field(3000, alias="WEBHOOK_PORT")

    # ───────────────────────── Admins ──────────────────────────────────
    admin_telegram_ids: str = Field("", alias="ADMIN_TELEGRAM_IDS")

    # ───────────────────────── Ledger ──────────────────────────────────
    ledger_backend: Literal["none", "csv", "sheets"] = Field("csv", alias="LEDGER_BACKEND")
    ledger_csv_path: str = Field("data/ledger.csv", alias="LEDGER_CSV_PATH")
    google_sheet_id: str = Field("", alias="GOOGLE_SHEET_ID")
    google_sheets_keyfile: str = Field("", alias="GOOGLE_SHEETS_KEYFILE")
    google_sheet_range: str = Field("Sheet1!A:E", alias="GOOGLE_SHEET_RANGE")
    ledger_timezone: str = Field("Europe/Madrid", alias="LEDGER_TIMEZONE")

    # ───────────────────────── Logging ─────────────────────────────────
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def admin_ids(self) -> FrozenSet[int]:
        """Telegram ids from ``ADMIN_TELEGRAM_IDS``; blanks and junk are skipped."""
        ids = set()
        for part in self.admin_telegram_ids.split(","):
            part = part.strip()
            if part.lstrip("-").isdigit():
                ids.add(int(part))
        return frozenset(ids)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_token)

    @property
    def whatsapp_enabled(self) -> bool:
        return bool(self.whatsapp_token and self.whatsapp_phone_id)


@lru_cache
def get_settings() -> Settings:
    return Settings()
