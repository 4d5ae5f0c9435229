"""
Order model for Manifest Bot.

An order is created as a ``draft`` when a customer confirms a non-empty buffer.
Once it leaves ``draft`` only ``status`` and the tracking fields change.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, List, Optional
from decimal import Decimal
from enum import Enum

from sqlalchemy import Enum as SAEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from manifest_bot.core.types import LineItem, OrderSnapshot

from .base import Timestamped
from .order_item import OrderItem


class OrderStatus(str, Enum):
    draft = "draft"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.delivered, OrderStatus.cancelled})

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.draft: frozenset({OrderStatus.processing, OrderStatus.cancelled}),
    OrderStatus.processing: frozenset({OrderStatus.shipped, OrderStatus.cancelled}),
    OrderStatus.shipped: frozenset({OrderStatus.delivered, OrderStatus.cancelled}),
    OrderStatus.delivered: frozenset(),
    OrderStatus.cancelled: frozenset(),
}


class Order(Timestamped):
    """
    Order model representing one shipment manifest.

    Attributes:
        id (int): Primary key
        owner_user_id (Optional[int]): User that created the order
        client_phone (Optional[str]): Owner's phone at confirm time, used by admin search
        status (OrderStatus): Lifecycle status
        total_sum (Decimal): Sum of the item line totals
        tracking_number (Optional[str]): Carrier tracking number
        tracking_url (Optional[str]): Carrier tracking page
        items (List[OrderItem]): Lines, ordered by position
    """
    __tablename__ = "orders"

    owner_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    client_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        default=OrderStatus.draft,
        nullable=False,
        index=True,
    )
    total_sum: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    tracking_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tracking_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    items: Mapped[List[OrderItem]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    @validates("total_sum")
    def validate_total_sum(self, key: str, value: Decimal) -> Decimal:
        """Validate total sum."""
        if value is None or value < 0:
            raise ValueError("Total sum cannot be negative")
        return value

    @property
    def short_id(self) -> str:
        return f"#{self.id}"

    @property
    def is_draft(self) -> bool:
        return self.status == OrderStatus.draft

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[OrderStatus(self.status)]

    def replace_items(self, lines: Iterable[LineItem]) -> None:
        """Replace all lines and recompute ``total_sum``."""
        self.items = [
            OrderItem(position=pos, product=line.product, quantity=line.quantity, line_total=line.line_total)
            for pos, line in enumerate(lines)
        ]
        self.recalculate_total()

    def recalculate_total(self) -> Decimal:
        self.total_sum = sum((Decimal(item.line_total) for item in self.items), Decimal("0"))
        return self.total_sum

    def line_items(self) -> List[LineItem]:
        return [item.to_line_item() for item in self.items]

    def snapshot(self) -> OrderSnapshot:
        return OrderSnapshot(
            id=self.id,
            owner_user_id=self.owner_user_id,
            client_phone=self.client_phone,
            status=OrderStatus(self.status).value,
            total_sum=Decimal(self.total_sum),
            items=tuple(self.line_items()),
            tracking_number=self.tracking_number,
            tracking_url=self.tracking_url,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __str__(self) -> str:
        return f"Order {self.short_id} ({OrderStatus(self.status).value}, {self.total_sum})"
