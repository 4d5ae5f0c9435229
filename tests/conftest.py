"""
Fixtures for the Manifest Bot tests.

Every test gets its own in-memory SQLite database with a small catalog.
"""

import pytest
from sqlalchemy.pool import StaticPool

from manifest_bot.core.admin import AdminWorkflow
from manifest_bot.core.engine import ConversationEngine
from manifest_bot.core.events import TelegramId, WhatsAppId
from manifest_bot.core.intake import IntakeStateMachine
from manifest_bot.core.lifecycle import OrderLifecycleManager
from manifest_bot.core.notifications import NotificationDispatcher
from manifest_bot.db import create_tables, get_engine_and_session
from manifest_bot.models import Category, Product
from manifest_bot.storage import unit_of_work_factory

from tests.helpers import ADMIN, FakeChannel, FakeLedger


@pytest.fixture
async def session_factory():
    engine, factory = get_engine_and_session(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return unit_of_work_factory(session_factory)


@pytest.fixture
async def catalog(session_factory):
    """C1 with P1 and P2, C2 with P3."""
    async with session_factory() as session:
        c1 = Category(name="C1", emoji="👕")
        c2 = Category(name="C2", emoji="👟")
        session.add_all([c1, c2])
        await session.flush()
        p1 = Product(name="P1", category_id=c1.id)
        p2 = Product(name="P2", category_id=c1.id)
        p3 = Product(name="P3", category_id=c2.id)
        session.add_all([p1, p2, p3])
        await session.commit()
        return {"c1": c1.id, "c2": c2.id, "p1": p1.id, "p2": p2.id, "p3": p3.id}


@pytest.fixture
def telegram_channel():
    return FakeChannel(TelegramId)


@pytest.fixture
def whatsapp_channel():
    return FakeChannel(WhatsAppId)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def notifier(uow_factory, telegram_channel, whatsapp_channel):
    return NotificationDispatcher(uow_factory, [telegram_channel, whatsapp_channel])


@pytest.fixture
def lifecycle(ledger, notifier):
    return OrderLifecycleManager(ledger, notifier)


@pytest.fixture
def engine(uow_factory, lifecycle, notifier):
    return ConversationEngine(
        uow_factory,
        IntakeStateMachine(lifecycle, notifier),
        AdminWorkflow(lifecycle),
        admin_telegram_ids={ADMIN.value},
    )
