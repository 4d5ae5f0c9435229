"""
Normalised inbound events and outbound renderables.

Channel adapters translate platform updates into :class:`IntakeEvent` and
render :class:`Renderable` replies with platform-native buttons. Nothing in
here knows about a particular messaging platform.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Tuple, Union


class Channel(str, Enum):
    telegram = "telegram"
    whatsapp = "whatsapp"


@dataclass(frozen=True)
class TelegramId:
    value: int
    channel = Channel.telegram

    @property
    def key(self) -> str:
        return f"{self.channel.value}:{self.value}"


@dataclass(frozen=True)
class WhatsAppId:
    value: str
    channel = Channel.whatsapp

    @property
    def key(self) -> str:
        return f"{self.channel.value}:{self.value}"


Identity = Union[TelegramId, WhatsAppId]


class EventKind(str, Enum):
    free_text = "free_text"
    structured_choice = "structured_choice"


# ── choice ids ────────────────────────────────────────────────────────────────
# Parametrised ids are "<prefix>:<argument>".
CHOICE_CATEGORY = "category"            # category:<id>
CHOICE_PRODUCT = "product"              # product:<id>
CHOICE_REMOVE_ITEM = "remove-item"      # remove-item:<index>
CHOICE_EDIT_DRAFT = "edit-draft"        # edit-draft:<orderId>
CHOICE_FINALIZE_DRAFT = "finalize-draft"  # finalize-draft:<orderId>
CHOICE_CUSTOM_PRODUCT = "custom-product"
CHOICE_ADD_ITEM = "add-item"
CHOICE_CONFIRM_ORDER = "confirm-order"
CHOICE_CANCEL_ORDER = "cancel-order"
CHOICE_START_ORDER = "start-order"
CHOICE_MENU = "menu"
CHOICE_MY_SHIPMENTS = "my-shipments"
CHOICE_MY_DRAFTS = "my-drafts"
CHOICE_CHANGE_PHONE = "change-phone"
CHOICE_CONTACT_SUPPORT = "contact-support"

ADMIN_PREFIX = "admin-"
CHOICE_ADMIN_SEARCH = "admin-search"
CHOICE_ADMIN_SET_TRACKING = "admin-set-tracking"
CHOICE_ADMIN_MARK_DELIVERED = "admin-mark-delivered"
CHOICE_ADMIN_SET_PROCESSING = "admin-set-processing"
CHOICE_ADMIN_MARK_CANCELLED = "admin-mark-cancelled"
CHOICE_ADMIN_EXIT = "admin-exit"


class ParsedChoice(NamedTuple):
    action: str
    argument: Optional[str] = None


def parse_choice(choice_id: str) -> ParsedChoice:
    """Split ``"remove-item:2"`` into ``("remove-item", "2")``."""
    action, sep, argument = choice_id.strip().partition(":")
    return ParsedChoice(action, argument if sep else None)


def make_choice_id(action: str, argument: object = None) -> str:
    return action if argument is None else f"{action}:{argument}"


@dataclass(frozen=True)
class IntakeEvent:
    """
    One inbound chat turn.

    Attributes:
        identity: Channel identity of the sender
        kind: Free text or structured (button/list) choice
        text: Message text for free-text events
        choice_id: Choice identifier for structured events
        display_name: Sender's display name, when the platform provides it
    """
    identity: Identity
    kind: EventKind
    text: Optional[str] = None
    choice_id: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def free_text(cls, identity: Identity, text: str, display_name: Optional[str] = None) -> "IntakeEvent":
        return cls(identity, EventKind.free_text, text=text, display_name=display_name)

    @classmethod
    def choice(cls, identity: Identity, choice_id: str, display_name: Optional[str] = None) -> "IntakeEvent":
        return cls(identity, EventKind.structured_choice, choice_id=choice_id, display_name=display_name)

    @property
    def parsed_choice(self) -> Optional[ParsedChoice]:
        if self.kind is not EventKind.structured_choice or not self.choice_id:
            return None
        return parse_choice(self.choice_id)

    @property
    def stripped_text(self) -> str:
        return (self.text or "").strip()


@dataclass(frozen=True)
class Choice:
    label: str
    choice_id: str


@dataclass(frozen=True)
class Renderable:
    """Plain-text body plus an optional set of labelled choices."""
    text: str
    choices: Tuple[Choice, ...] = field(default_factory=tuple)
