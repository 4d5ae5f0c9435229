"""
Conversation states for the intake and admin workflows.

Both machines persist their state on the User record, so every value here is
stored in the database. The enums are closed: handlers keep a mapping with an
entry for every member.
"""

from __future__ import annotations

from enum import Enum


class IntakeState(str, Enum):
    """
    States of the customer intake conversation.

    Attributes:
        idle: Nothing in progress
        choosing_category: Category list shown
        choosing_product: Product list of one category shown
        awaiting_custom_product_name: Waiting for a free-text product name
        awaiting_quantity: Waiting for the quantity of the last buffer item
        awaiting_line_total: Waiting for the total of the last buffer item
        reviewing_order: Buffer preview shown with edit/confirm buttons
        awaiting_phone: Waiting for the customer's phone number
        awaiting_support_message: Waiting for a message for the operators
    """
    idle = "idle"
    choosing_category = "choosing_category"
    choosing_product = "choosing_product"
    awaiting_custom_product_name = "awaiting_custom_product_name"
    awaiting_quantity = "awaiting_quantity"
    awaiting_line_total = "awaiting_line_total"
    reviewing_order = "reviewing_order"
    awaiting_phone = "awaiting_phone"
    awaiting_support_message = "awaiting_support_message"

    @property
    def is_building(self) -> bool:
        return self in BUILDING_STATES


# States in which the order buffer may hold items.
BUILDING_STATES = frozenset({
    IntakeState.choosing_category,
    IntakeState.choosing_product,
    IntakeState.awaiting_custom_product_name,
    IntakeState.awaiting_quantity,
    IntakeState.awaiting_line_total,
    IntakeState.reviewing_order,
})


class AdminState(str, Enum):
    """States of the operator workflow."""
    idle = "idle"
    searching_by_phone = "searching_by_phone"
    managing_order = "managing_order"
    awaiting_tracking_number = "awaiting_tracking_number"
    awaiting_tracking_url = "awaiting_tracking_url"


class UserRole(str, Enum):
    customer = "customer"
    admin = "admin"
