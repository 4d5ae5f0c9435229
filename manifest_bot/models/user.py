"""
User model for Manifest Bot.

One record per channel identity. The record carries the conversation state of
both workflows, so a process restart between two chat turns loses nothing.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, CheckConstraint, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from manifest_bot.core.events import Identity, TelegramId, WhatsAppId
from manifest_bot.core.types import LineItem

from .base import Timestamped
from .states import AdminState, IntakeState, UserRole


def _enum_column(enum_cls, length: int = 40) -> SAEnum:
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class User(Timestamped):
    """
    User model representing one chat identity.

    Attributes:
        id (int): Primary key
        telegram_id (Optional[int]): Telegram user id
        whatsapp_id (Optional[str]): WhatsApp id (the sender's number without "+")
        display_name (Optional[str]): Name shown by the platform
        phone (Optional[str]): Canonical contact phone, "+<digits>"
        role (UserRole): customer or admin
        conversation_state (IntakeState): Intake workflow state
        admin_state (AdminState): Admin workflow state
        order_buffer (List[dict]): Serialized in-progress line items
        pending_draft_order_id (Optional[int]): Draft that a confirm will update
        pending_admin_order_id (Optional[int]): Order the admin is managing
        pending_tracking_number (Optional[str]): Tracking number awaiting its URL
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(telegram_id IS NULL) <> (whatsapp_id IS NULL)",
            name="ck_users_single_identity",
        ),
    )

    telegram_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True, nullable=True)
    whatsapp_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    role: Mapped[UserRole] = mapped_column(_enum_column(UserRole, 16), default=UserRole.customer, nullable=False)

    conversation_state: Mapped[IntakeState] = mapped_column(
        _enum_column(IntakeState), default=IntakeState.idle, nullable=False
    )
    admin_state: Mapped[AdminState] = mapped_column(
        _enum_column(AdminState), default=AdminState.idle, nullable=False
    )
    order_buffer: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    pending_draft_order_id: Mapped[Optional[int]] = mapped_column(nullable=True)

    pending_admin_order_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    pending_tracking_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    @validates("phone")
    def validate_phone(self, key: str, value: Optional[str]) -> Optional[str]:
        """Validate phone number."""
        if value:
            value = value.strip()
            if not re.match(r"^\+\d{9,15}$", value):
                raise ValueError("Phone must be '+' followed by 9-15 digits")
            return value
        return None

    # ── identity ────────────────────────────────────────────────────────────
    @property
    def identity(self) -> Identity:
        if self.telegram_id is not None:
            return TelegramId(self.telegram_id)
        return WhatsAppId(self.whatsapp_id)

    def identities(self) -> List[Identity]:
        found: List[Identity] = []
        if self.telegram_id is not None:
            found.append(TelegramId(self.telegram_id))
        if self.whatsapp_id is not None:
            found.append(WhatsAppId(self.whatsapp_id))
        return found

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    # ── order buffer ────────────────────────────────────────────────────────
    @property
    def buffer(self) -> List[LineItem]:
        return [LineItem.from_dict(raw) for raw in (self.order_buffer or [])]

    @buffer.setter
    def buffer(self, items: List[LineItem]) -> None:
        # A fresh list is assigned so the JSON column is flagged as modified.
        self.order_buffer = [item.to_dict() for item in items]

    def reset_intake(self, state: IntakeState = IntakeState.idle, clear_draft: bool = False) -> None:
        """Empty the buffer and move the intake workflow to ``state``."""
        self.buffer = []
        self.conversation_state = state
        if clear_draft:
            self.pending_draft_order_id = None

    def reset_admin(self) -> None:
        self.admin_state = AdminState.idle
        self.pending_admin_order_id = None
        self.pending_tracking_number = None

    def __str__(self) -> str:
        return f"{self.display_name or 'user'} ({self.identity.key})"
