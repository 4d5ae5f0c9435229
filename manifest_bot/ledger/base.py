"""Row layout shared by every ledger backend."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytz

from manifest_bot.core.constants import CURRENCY_SYMBOL
from manifest_bot.core.types import OrderSnapshot

HEADER = ["date", "phone", "items", "total", "status"]


def format_items(order: OrderSnapshot) -> str:
    """``"P1 (3 pcs) (9.99€), Gift box (1 pcs) (5.00€)"``"""
    return ", ".join(
        f"{item.product} ({item.quantity} pcs) ({Decimal(item.line_total):.2f}{CURRENCY_SYMBOL})"
        for item in order.items
    )


def format_ledger_row(order: OrderSnapshot, tz: str = "Europe/Madrid", now: Optional[datetime] = None) -> List[str]:
    stamp = now or order.updated_at or datetime.now(timezone.utc)
    if stamp.tzinfo is None:
        stamp = pytz.utc.localize(stamp)
    local = stamp.astimezone(pytz.timezone(tz))
    return [
        local.strftime("%d.%m.%Y, %H:%M:%S"),
        order.client_phone or "",
        format_items(order),
        f"{Decimal(order.total_sum):.2f}",
        order.status,
    ]
