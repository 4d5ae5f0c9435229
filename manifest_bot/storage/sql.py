"""
Repositories over one ``AsyncSession``.

Relationships are never lazy-loaded from async code: order items use
``selectin`` loading and catalog lists are queried explicitly.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from manifest_bot.core.events import Identity, TelegramId
from manifest_bot.models import (
    AdminState,
    Category,
    IntakeState,
    Order,
    OrderStatus,
    Product,
    User,
    UserRole,
    utcnow,
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def by_identity(self, identity: Identity) -> Optional[User]:
        if isinstance(identity, TelegramId):
            stmt = select(User).where(User.telegram_id == identity.value)
        else:
            stmt = select(User).where(User.whatsapp_id == identity.value)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        identity: Identity,
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
        role: UserRole = UserRole.customer,
    ) -> User:
        now = utcnow()
        user = User(
            display_name=display_name,
            phone=phone,
            role=role,
            conversation_state=IntakeState.idle,
            admin_state=AdminState.idle,
            order_buffer=[],
            created_at=now,
            updated_at=now,
        )
        if isinstance(identity, TelegramId):
            user.telegram_id = identity.value
        else:
            user.whatsapp_id = identity.value
        self.session.add(user)
        await self.session.flush()
        return user

    async def list_admins(self) -> List[User]:
        result = await self.session.execute(
            select(User).where(User.role == UserRole.admin).order_by(User.id)
        )
        return list(result.scalars().all())


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, order_id: int) -> Optional[Order]:
        return await self.session.get(Order, order_id)

    def add(self, order: Order) -> None:
        self.session.add(order)

    async def latest_for_phone(self, phone: str) -> Optional[Order]:
        """Newest order of any status for ``phone``."""
        result = await self.session.execute(
            select(Order)
            .where(Order.client_phone == phone)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def shipments_of(self, user_id: int) -> List[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.owner_user_id == user_id, Order.status != OrderStatus.draft)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    async def drafts_of(self, user_id: int) -> List[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.owner_user_id == user_id, Order.status == OrderStatus.draft)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())


class CatalogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_categories(self) -> List[Category]:
        result = await self.session.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def get_category(self, category_id: int) -> Optional[Category]:
        return await self.session.get(Category, category_id)

    async def list_products(self, category_id: int) -> List[Product]:
        result = await self.session.execute(
            select(Product).where(Product.category_id == category_id).order_by(Product.name)
        )
        return list(result.scalars().all())

    async def get_product(self, product_id: int) -> Optional[Product]:
        return await self.session.get(Product, product_id)


class SqlUnitOfWork:
    """One database transaction seen through the repositories."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)
        self.orders = OrderRepository(session)
        self.catalog = CatalogRepository(session)

    async def flush(self) -> None:
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh(self, instance: object) -> None:
        await self.session.refresh(instance)


def unit_of_work_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Return a callable that opens a :class:`SqlUnitOfWork` as an async context manager."""

    @asynccontextmanager
    async def open_unit_of_work() -> AsyncIterator[SqlUnitOfWork]:
        async with session_factory() as session:
            try:
                yield SqlUnitOfWork(session)
            except Exception:
                await session.rollback()
                raise

    return open_unit_of_work
