"""Test doubles and small helpers shared by the test modules."""

from decimal import Decimal
from typing import List, Optional, Tuple, Type

from manifest_bot.core.engine import ConversationEngine
from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.events import Identity, IntakeEvent, Renderable, TelegramId, WhatsAppId
from manifest_bot.core.interfaces import LedgerExport, NotificationChannel
from manifest_bot.core.types import LineItem, OrderSnapshot

CUSTOMER = TelegramId(1001)
OTHER_CUSTOMER = TelegramId(1002)
ADMIN = TelegramId(9001)
WA_CUSTOMER = WhatsAppId("34611111111")

CUSTOMER_PHONE = "+34600000000"


class FakeChannel(NotificationChannel):
    """Records every message instead of sending it."""

    def __init__(self, identity_type: Type, fail: bool = False):
        self.identity_type = identity_type
        self.fail = fail
        self.sent: List[Tuple[Identity, Renderable]] = []

    def accepts(self, identity: Identity) -> bool:
        return isinstance(identity, self.identity_type)

    async def send(self, identity: Identity, message: Renderable) -> None:
        if self.fail:
            raise ExternalDependencyFailure("fake", "send failed")
        self.sent.append((identity, message))

    def texts_for(self, identity: Identity) -> List[str]:
        return [message.text for to, message in self.sent if to == identity]


class FakeLedger(LedgerExport):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.rows: List[OrderSnapshot] = []

    async def append_order(self, order: OrderSnapshot) -> None:
        if self.fail:
            raise ExternalDependencyFailure("fake_ledger", "sheet unavailable")
        self.rows.append(order)


async def say(engine: ConversationEngine, identity: Identity, text: str) -> List[Renderable]:
    return await engine.handle(IntakeEvent.free_text(identity, text))


async def tap(engine: ConversationEngine, identity: Identity, choice_id: str) -> List[Renderable]:
    return await engine.handle(IntakeEvent.choice(identity, choice_id))


async def register(engine: ConversationEngine, identity: Identity, phone: str = CUSTOMER_PHONE) -> None:
    """First contact followed by the phone number."""
    await tap(engine, identity, "menu")
    await say(engine, identity, phone)


async def load_user(uow_factory, identity: Identity):
    async with uow_factory() as uow:
        return await uow.users.by_identity(identity)


async def load_order(uow_factory, order_id: int):
    async with uow_factory() as uow:
        return await uow.orders.get(order_id)


async def build_first_item(
    engine: ConversationEngine,
    identity: Identity,
    catalog,
    quantity: str = "3",
    total: str = "9.99",
) -> List[Renderable]:
    """start order → C1 → P1 → quantity → total; ends in reviewing_order."""
    await tap(engine, identity, "start-order")
    await tap(engine, identity, f"category:{catalog['c1']}")
    await tap(engine, identity, f"product:{catalog['p1']}")
    await say(engine, identity, quantity)
    return await say(engine, identity, total)


def all_text(replies: List[Renderable]) -> str:
    return "\n".join(reply.text for reply in replies)


def choice_ids(reply: Renderable) -> List[str]:
    return [choice.choice_id for choice in reply.choices]


def line(product: str, quantity: int, total: str) -> LineItem:
    return LineItem(product=product, quantity=quantity, line_total=Decimal(total))


def find_reply(replies: List[Renderable], needle: str) -> Optional[Renderable]:
    for reply in replies:
        if needle in reply.text:
            return reply
    return None
