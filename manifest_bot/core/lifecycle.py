"""
Order lifecycle: draft upsert, finalize and status transitions.

Every operation works inside the caller's unit of work and never commits.
Ledger export and customer notifications are queued on the caller's
:class:`~manifest_bot.core.effects.AfterCommit` and only run once the status
change is durable.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence

import structlog

from manifest_bot.models import Order, OrderStatus, User, utcnow

from . import texts
from .effects import AfterCommit
from .errors import InvalidTransition, NotFound, ValidationError
from .interfaces import LedgerExport, UnitOfWork
from .types import LineItem, OrderSnapshot

if TYPE_CHECKING:
    from .notifications import NotificationDispatcher

logger = structlog.get_logger()


class OrderLifecycleManager:
    def __init__(self, ledger: Optional[LedgerExport], notifier: "NotificationDispatcher"):
        self.ledger = ledger
        self.notifier = notifier

    async def _get(self, uow: UnitOfWork, order_id: int) -> Order:
        order = await uow.orders.get(order_id)
        if order is None:
            raise NotFound("order", order_id)
        return order

    async def upsert_draft(self, uow: UnitOfWork, user: User, items: Sequence[LineItem]) -> Order:
        """
        Create the user's draft or update the one ``pending_draft_order_id`` points at.

        Raises:
            ValidationError: the buffer is empty or a line is incomplete
        """
        if not items:
            raise ValidationError(texts.nothing_to_save().text)
        if not all(item.is_complete for item in items):
            raise ValidationError("⚠️ Finish the current item (quantity and total) before saving.")

        order: Optional[Order] = None
        if user.pending_draft_order_id is not None:
            existing = await uow.orders.get(user.pending_draft_order_id)
            if existing is not None and existing.is_draft and existing.owner_user_id == user.id:
                order = existing
            else:
                logger.info(
                    "stale_draft_reference",
                    user_id=user.id,
                    order_id=user.pending_draft_order_id,
                )

        created = order is None
        if order is None:
            now = utcnow()
            order = Order(
                owner_user_id=user.id,
                status=OrderStatus.draft,
                total_sum=Decimal("0"),
                created_at=now,
                updated_at=now,
            )
            uow.orders.add(order)

        order.replace_items(items)
        order.client_phone = user.phone
        order.touch()
        await uow.flush()

        user.pending_draft_order_id = order.id
        logger.info(
            "draft_saved",
            order_id=order.id,
            user_id=user.id,
            created=created,
            items=len(items),
            total_sum=str(order.total_sum),
        )
        return order

    async def finalize(
        self, uow: UnitOfWork, order_id: int, effects: AfterCommit, notify_owner: bool = False
    ) -> Order:
        """
        Move a draft to ``processing`` and queue its ledger export.

        ``notify_owner`` also queues the status notification, for drafts
        finalized by an operator.
        """
        order = await self._get(uow, order_id)
        current = OrderStatus(order.status)
        if current is not OrderStatus.draft:
            raise InvalidTransition(current, OrderStatus.processing)

        order.status = OrderStatus.processing
        order.touch()

        if order.owner_user_id is not None:
            owner = await uow.users.get(order.owner_user_id)
            if owner is not None and owner.pending_draft_order_id == order.id:
                owner.pending_draft_order_id = None

        await uow.flush()
        if self.ledger is not None:
            effects.add(self._export, order.snapshot())
        if notify_owner:
            snapshot = order.snapshot()
            self._queue_notification(effects, snapshot, texts.status_notification(snapshot))
        logger.info("order_finalized", order_id=order.id, total_sum=str(order.total_sum))
        return order

    async def transition_status(
        self, uow: UnitOfWork, order_id: int, new_status: OrderStatus, effects: AfterCommit
    ) -> Order:
        """Apply one legal status change and queue the customer notification."""
        order = await self._get(uow, order_id)
        current = OrderStatus(order.status)
        if not order.can_transition_to(new_status):
            raise InvalidTransition(current, new_status)

        order.status = new_status
        order.touch()
        await uow.flush()

        snapshot = order.snapshot()
        self._queue_notification(effects, snapshot, texts.status_notification(snapshot))
        logger.info(
            "order_status_changed",
            order_id=order.id,
            from_status=current.value,
            to_status=new_status.value,
        )
        return order

    async def set_tracking(
        self, uow: UnitOfWork, order_id: int, number: str, url: Optional[str], effects: AfterCommit
    ) -> Order:
        """
        Store tracking data and mark the order shipped.

        The status is forced to ``shipped`` whatever it was before; exactly one
        notification (the tracking message) is queued.
        """
        order = await self._get(uow, order_id)
        previous = OrderStatus(order.status).value

        order.tracking_number = number
        order.tracking_url = url or None
        order.status = OrderStatus.shipped
        order.touch()
        await uow.flush()

        snapshot = order.snapshot()
        self._queue_notification(effects, snapshot, texts.tracking_notification(snapshot))
        logger.info(
            "tracking_set",
            order_id=order.id,
            from_status=previous,
            tracking_number=number,
            has_url=bool(url),
        )
        return order

    def _queue_notification(self, effects: AfterCommit, order: OrderSnapshot, message) -> None:
        if order.owner_user_id is None:
            logger.warning("notification_skipped_no_owner", order_id=order.id)
            return
        effects.add(self.notifier.notify, order.owner_user_id, message)

    async def _export(self, order: OrderSnapshot) -> None:
        try:
            await self.ledger.append_order(order)
        except Exception:
            logger.exception("ledger_export_failed", order_id=order.id)
            return
        logger.info("ledger_exported", order_id=order.id)
