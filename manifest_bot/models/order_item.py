"""
OrderItem model for Manifest Bot.

This module defines the OrderItem model which represents committed lines of an order.
"""

from __future__ import annotations
from typing import TYPE_CHECKING
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from manifest_bot.core.types import LineItem

from .base import IntPK

if TYPE_CHECKING:
    from .order import Order


class OrderItem(IntPK):
    """
    OrderItem model representing one line of an order.

    Attributes:
        id (int): Primary key
        order_id (int): Foreign key to order
        position (int): Zero-based position inside the order
        product (str): Product display name
        quantity (int): Number of pieces
        line_total (Decimal): Total amount for the line
    """
    __tablename__ = "order_items"

    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @validates("product")
    def validate_product(self, key: str, value: str) -> str:
        """Validate product name."""
        if not value or not value.strip():
            raise ValueError("Product name cannot be empty")
        return value.strip()

    @validates("quantity")
    def validate_quantity(self, key: str, value: int) -> int:
        """Validate quantity."""
        if value is None or value <= 0:
            raise ValueError("Quantity must be positive")
        return value

    @validates("line_total")
    def validate_line_total(self, key: str, value: Decimal) -> Decimal:
        """Validate line total."""
        if value is None or value < 0:
            raise ValueError("Line total cannot be negative")
        return value

    def to_line_item(self) -> LineItem:
        return LineItem(product=self.product, quantity=self.quantity, line_total=Decimal(self.line_total))

    def __str__(self) -> str:
        return f"{self.product} ({self.quantity} pcs)"
