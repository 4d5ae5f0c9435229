"""Ledger backends that mirror finalized orders outside the database."""

from __future__ import annotations

from typing import Optional

import structlog

from manifest_bot.config import Settings
from manifest_bot.core.interfaces import LedgerExport

from .base import format_ledger_row
from .csv_ledger import CsvLedger
from .google_sheets import GoogleSheetsLedger, ServiceAccountTokenProvider

logger = structlog.get_logger()

__all__ = [
    "CsvLedger",
    "GoogleSheetsLedger",
    "ServiceAccountTokenProvider",
    "build_ledger",
    "format_ledger_row",
]


def build_ledger(settings: Settings) -> Optional[LedgerExport]:
    backend = settings.ledger_backend
    if backend == "csv":
        return CsvLedger(settings.ledger_csv_path, settings.ledger_timezone)
    if backend == "sheets":
        if not (settings.google_sheet_id and settings.google_sheets_keyfile):
            logger.warning("sheets_ledger_not_configured")
            return None
        return GoogleSheetsLedger(
            settings.google_sheet_id,
            settings.google_sheet_range,
            ServiceAccountTokenProvider(settings.google_sheets_keyfile),
            tz=settings.ledger_timezone,
        )
    return None
