"""
Local CSV copy of finalized orders.
"""
from __future__ import annotations

import asyncio
import csv
import io
import pathlib
from typing import List

import aiofiles
import structlog

from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.interfaces import LedgerExport
from manifest_bot.core.types import OrderSnapshot

from .base import HEADER, format_ledger_row

logger = structlog.get_logger()


def _to_csv_line(row: List[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf).writerow(row)
    return buf.getvalue()


class CsvLedger(LedgerExport):
    def __init__(self, path: str | pathlib.Path, tz: str = "Europe/Madrid"):
        self.path = pathlib.Path(path)
        self.tz = tz
        self._lock = asyncio.Lock()

    async def append_order(self, order: OrderSnapshot) -> None:
        row = format_ledger_row(order, self.tz)
        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                is_new = not self.path.exists() or self.path.stat().st_size == 0
                async with aiofiles.open(self.path, mode="a", encoding="utf-8", newline="") as f:
                    if is_new:
                        await f.write(_to_csv_line(HEADER))
                        logger.info("created_csv_file", file=str(self.path))
                    await f.write(_to_csv_line(row))
            except OSError as exc:
                raise ExternalDependencyFailure("csv_ledger", str(exc)) from exc
        logger.debug("csv_ledger_row_appended", order_id=order.id, file=str(self.path))

    async def read_rows(self) -> List[List[str]]:
        """All data rows (header excluded)."""
        if not self.path.exists():
            return []
        async with aiofiles.open(self.path, mode="r", encoding="utf-8", newline="") as f:
            content = await f.read()
        rows = list(csv.reader(io.StringIO(content)))
        return rows[1:]
