"""
Operator workflow: find an order by phone, set tracking, change status.

Runs beside the intake conversation with its own state on the User record.
Every status change goes through :class:`OrderLifecycleManager`, so the
customer is always notified.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, List

import structlog

from manifest_bot.models import AdminState, Order, OrderStatus, User

from . import events as ev
from . import texts
from .effects import AfterCommit
from .errors import NotFound, ValidationError
from .events import EventKind, IntakeEvent, Renderable
from .interfaces import UnitOfWork
from .intake import Turn
from .lifecycle import OrderLifecycleManager
from .parsing import normalize_phone, parse_tracking_number, parse_tracking_url

logger = structlog.get_logger()

Handler = Callable[[Turn], Awaitable[List[Renderable]]]

# Status-changing actions offered while managing an order.
STATUS_ACTIONS: Dict[str, OrderStatus] = {
    ev.CHOICE_ADMIN_MARK_DELIVERED: OrderStatus.delivered,
    ev.CHOICE_ADMIN_SET_PROCESSING: OrderStatus.processing,
    ev.CHOICE_ADMIN_MARK_CANCELLED: OrderStatus.cancelled,
}


class AdminWorkflow:
    def __init__(self, lifecycle: OrderLifecycleManager):
        self.lifecycle = lifecycle
        self._states: Dict[AdminState, Handler] = {
            AdminState.idle: self._idle,
            AdminState.searching_by_phone: self._searching_by_phone,
            AdminState.managing_order: self._managing_order,
            AdminState.awaiting_tracking_number: self._awaiting_tracking_number,
            AdminState.awaiting_tracking_url: self._awaiting_tracking_url,
        }
        missing = set(AdminState) - set(self._states)
        if missing:
            raise RuntimeError(f"No admin handler for states: {sorted(s.value for s in missing)}")

    @staticmethod
    def accepts(user: User, event: IntakeEvent) -> bool:
        """Admin choices, and free text while an admin conversation is open."""
        parsed = event.parsed_choice
        if parsed is not None:
            return parsed.action.startswith(ev.ADMIN_PREFIX)
        return event.kind is EventKind.free_text and AdminState(user.admin_state) is not AdminState.idle

    async def handle(
        self, uow: UnitOfWork, user: User, event: IntakeEvent, effects: AfterCommit
    ) -> List[Renderable]:
        turn = Turn(uow, user, event, effects)
        if not user.is_admin:
            logger.warning("admin_action_refused", user_id=user.id, choice_id=event.choice_id)
            if AdminState(user.admin_state) is not AdminState.idle:
                user.reset_admin()
            return [texts.admin_only()]

        if turn.action == ev.CHOICE_ADMIN_SEARCH:
            user.reset_admin()
            user.admin_state = AdminState.searching_by_phone
            return [texts.admin_search_prompt()]
        if turn.action == ev.CHOICE_ADMIN_EXIT:
            user.reset_admin()
            return [texts.admin_exited(), texts.main_menu(user)]
        return await self._states[AdminState(user.admin_state)](turn)

    # ── states ──────────────────────────────────────────────────────────────
    async def _idle(self, turn: Turn) -> List[Renderable]:
        return [texts.action_not_available(), texts.main_menu(turn.user)]

    async def _searching_by_phone(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return [texts.action_not_available(), texts.admin_search_prompt()]
        phone = normalize_phone(turn.event.text)
        order = await turn.uow.orders.latest_for_phone(phone)
        if order is None:
            raise ValidationError(texts.admin_no_order_for(phone))
        turn.user.pending_admin_order_id = order.id
        turn.user.admin_state = AdminState.managing_order
        logger.info("admin_order_found", admin_id=turn.user.id, order_id=order.id)
        return [texts.admin_order_summary(order)]

    async def _managing_order(self, turn: Turn) -> List[Renderable]:
        user = turn.user
        if turn.action == ev.CHOICE_ADMIN_SET_TRACKING:
            await self._pending_order(turn)
            user.admin_state = AdminState.awaiting_tracking_number
            return [texts.tracking_number_prompt()]
        if turn.action == ev.CHOICE_ADMIN_SET_PROCESSING and (await self._pending_order(turn)).is_draft:
            # a draft reaches processing only through finalize
            order = await self.lifecycle.finalize(
                turn.uow, self._pending_id(turn), turn.effects, notify_owner=True
            )
            user.reset_admin()
            return [texts.admin_status_changed(order)]
        if turn.action in STATUS_ACTIONS:
            order = await self.lifecycle.transition_status(
                turn.uow, self._pending_id(turn), STATUS_ACTIONS[turn.action], turn.effects
            )
            user.reset_admin()
            return [texts.admin_status_changed(order)]
        order = await self._pending_order(turn)
        if turn.is_text:
            return [texts.admin_use_buttons(), texts.admin_order_summary(order)]
        return [texts.action_not_available(), texts.admin_order_summary(order)]

    async def _awaiting_tracking_number(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return [texts.action_not_available(), texts.tracking_number_prompt()]
        turn.user.pending_tracking_number = parse_tracking_number(turn.event.text)
        turn.user.admin_state = AdminState.awaiting_tracking_url
        return [texts.tracking_url_prompt()]

    async def _awaiting_tracking_url(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return [texts.action_not_available(), texts.tracking_url_prompt()]
        user = turn.user
        url = parse_tracking_url(turn.event.text)
        if not user.pending_tracking_number:
            raise NotFound("tracking number", user.pending_admin_order_id)
        order = await self.lifecycle.set_tracking(
            turn.uow, self._pending_id(turn), user.pending_tracking_number, url, turn.effects
        )
        user.reset_admin()
        return [texts.admin_tracking_saved(order)]

    # ── helpers ─────────────────────────────────────────────────────────────
    @staticmethod
    def _pending_id(turn: Turn) -> int:
        order_id = turn.user.pending_admin_order_id
        if order_id is None:
            raise NotFound("order", None)
        return order_id

    async def _pending_order(self, turn: Turn) -> Order:
        order_id = self._pending_id(turn)
        order = await turn.uow.orders.get(order_id)
        if order is None:
            raise NotFound("order", order_id)
        return order
