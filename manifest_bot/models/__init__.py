"""
Models package: imports every model so ``Base.metadata`` is complete.
"""

from __future__ import annotations

from .base import Base, IntPK, Timestamped, utcnow
from .states import AdminState, BUILDING_STATES, IntakeState, UserRole
from .user import User
from .order_item import OrderItem
from .order import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, Order, OrderStatus
from .catalog import Category, Product

__all__ = [
    "Base",
    "IntPK",
    "Timestamped",
    "utcnow",
    "AdminState",
    "BUILDING_STATES",
    "IntakeState",
    "UserRole",
    "User",
    "OrderItem",
    "Order",
    "OrderStatus",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "Category",
    "Product",
]
