"""
Plain value types passed between the core and its collaborators.

``LineItem`` is the shape of both the in-progress order buffer and the items of
a persisted order. ``OrderSnapshot`` is a detached, immutable copy of an
order used by side effects that run after the database session is closed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class LineItem:
    """
    One product/quantity/total triple.

    Attributes:
        product: Display name of the product
        quantity: Number of pieces, 0 while the quantity is still being asked for
        line_total: Total amount for the line, 0 while still being asked for
    """
    product: str
    quantity: int = 0
    line_total: Decimal = Decimal("0")

    @property
    def is_complete(self) -> bool:
        return self.quantity > 0 and self.line_total >= 0

    def with_quantity(self, quantity: int) -> "LineItem":
        return replace(self, quantity=quantity)

    def with_line_total(self, line_total: Decimal) -> "LineItem":
        return replace(self, line_total=line_total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product,
            "quantity": self.quantity,
            "line_total": str(self.line_total),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            product=str(data.get("product", "")),
            quantity=int(data.get("quantity") or 0),
            line_total=Decimal(str(data.get("line_total") or "0")),
        )


@dataclass(frozen=True)
class OrderSnapshot:
    id: int
    owner_user_id: Optional[int]
    client_phone: Optional[str]
    status: str
    total_sum: Decimal
    items: Tuple[LineItem, ...] = field(default_factory=tuple)
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
