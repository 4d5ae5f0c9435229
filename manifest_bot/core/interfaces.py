"""
Collaborator interfaces consumed by the core.

The core never imports a storage engine, a messaging SDK or a spreadsheet
client; it receives objects that satisfy these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Callable, List, Optional, Protocol, Sequence

from manifest_bot.models import Category, Order, Product, User, UserRole

from .events import Identity, Renderable
from .types import OrderSnapshot


class UserStore(Protocol):
    async def get(self, user_id: int) -> Optional[User]: ...

    async def by_identity(self, identity: Identity) -> Optional[User]: ...

    async def create(
        self,
        identity: Identity,
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
        role: UserRole = UserRole.customer,
    ) -> User: ...

    async def list_admins(self) -> List[User]: ...


class OrderStore(Protocol):
    async def get(self, order_id: int) -> Optional[Order]: ...

    def add(self, order: Order) -> None: ...

    async def latest_for_phone(self, phone: str) -> Optional[Order]: ...

    async def shipments_of(self, user_id: int) -> List[Order]: ...

    async def drafts_of(self, user_id: int) -> List[Order]: ...


class CatalogLookup(Protocol):
    async def list_categories(self) -> List[Category]: ...

    async def get_category(self, category_id: int) -> Optional[Category]: ...

    async def list_products(self, category_id: int) -> List[Product]: ...

    async def get_product(self, product_id: int) -> Optional[Product]: ...


class UnitOfWork(Protocol):
    users: UserStore
    orders: OrderStore
    catalog: CatalogLookup

    async def flush(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def refresh(self, instance: object) -> None: ...


UnitOfWorkFactory = Callable[[], AsyncContextManager[UnitOfWork]]


class NotificationChannel(ABC):
    """Outbound capability of one messaging platform."""

    @abstractmethod
    def accepts(self, identity: Identity) -> bool:
        """Whether ``identity`` belongs to this platform."""

    @abstractmethod
    async def send(self, identity: Identity, message: Renderable) -> None:
        """Deliver ``message``; raise ExternalDependencyFailure on failure."""


class LedgerExport(ABC):
    """External spreadsheet-like ledger of finalized orders."""

    @abstractmethod
    async def append_order(self, order: OrderSnapshot) -> None:
        """Append one row for ``order``. Not idempotent."""

    async def aclose(self) -> None:
        return None


def channel_for(channels: Sequence[NotificationChannel], identity: Identity) -> Optional[NotificationChannel]:
    for channel in channels:
        if channel.accepts(identity):
            return channel
    return None
