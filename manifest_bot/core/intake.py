"""
Customer intake conversation.

``IntakeStateMachine.handle`` consumes one :class:`IntakeEvent` for one user,
mutates the user's persisted state and order buffer, and returns the replies.
Choices that work from any state (menu, read-only queries, draft actions,
start/cancel) are resolved first; everything else goes to the handler of the
user's current state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from manifest_bot.models import IntakeState, Order, User

from . import events as ev
from . import texts
from .constants import MAX_SUPPORT_MESSAGE_LENGTH
from .effects import AfterCommit
from .errors import NotFound, ValidationError
from .events import EventKind, IntakeEvent, Renderable
from .interfaces import UnitOfWork
from .lifecycle import OrderLifecycleManager
from .notifications import NotificationDispatcher
from .parsing import (
    normalize_phone,
    parse_amount,
    parse_index,
    parse_product_name,
    parse_quantity,
)
from .types import LineItem

logger = structlog.get_logger()


@dataclass
class Turn:
    """Everything a handler needs for one event."""
    uow: UnitOfWork
    user: User
    event: IntakeEvent
    effects: AfterCommit

    @property
    def is_text(self) -> bool:
        return self.event.kind is EventKind.free_text

    @property
    def action(self) -> Optional[str]:
        parsed = self.event.parsed_choice
        return parsed.action if parsed else None

    @property
    def argument(self) -> Optional[str]:
        parsed = self.event.parsed_choice
        return parsed.argument if parsed else None


Handler = Callable[[Turn], Awaitable[List[Renderable]]]


class IntakeStateMachine:
    def __init__(self, lifecycle: OrderLifecycleManager, notifier: NotificationDispatcher):
        self.lifecycle = lifecycle
        self.notifier = notifier

        self._global: Dict[str, Handler] = {
            ev.CHOICE_MENU: self._on_menu,
            ev.CHOICE_MY_SHIPMENTS: self._on_my_shipments,
            ev.CHOICE_MY_DRAFTS: self._on_my_drafts,
            ev.CHOICE_EDIT_DRAFT: self._on_edit_draft,
            ev.CHOICE_FINALIZE_DRAFT: self._on_finalize_draft,
            ev.CHOICE_START_ORDER: self._on_start_order,
            ev.CHOICE_CANCEL_ORDER: self._on_cancel,
            ev.CHOICE_CHANGE_PHONE: self._on_change_phone,
            ev.CHOICE_CONTACT_SUPPORT: self._on_contact_support,
        }
        self._states: Dict[IntakeState, Handler] = {
            IntakeState.idle: self._idle,
            IntakeState.choosing_category: self._choosing_category,
            IntakeState.choosing_product: self._choosing_product,
            IntakeState.awaiting_custom_product_name: self._awaiting_custom_product_name,
            IntakeState.awaiting_quantity: self._awaiting_quantity,
            IntakeState.awaiting_line_total: self._awaiting_line_total,
            IntakeState.reviewing_order: self._reviewing_order,
            IntakeState.awaiting_phone: self._awaiting_phone,
            IntakeState.awaiting_support_message: self._awaiting_support_message,
        }
        missing = set(IntakeState) - set(self._states)
        if missing:
            raise RuntimeError(f"No intake handler for states: {sorted(s.value for s in missing)}")

    async def handle(
        self, uow: UnitOfWork, user: User, event: IntakeEvent, effects: AfterCommit
    ) -> List[Renderable]:
        turn = Turn(uow, user, event, effects)
        state = IntakeState(user.conversation_state)

        if not user.phone and state is not IntakeState.awaiting_phone:
            user.reset_intake(IntakeState.awaiting_phone)
            return [texts.phone_request()]

        if turn.action in self._global:
            return await self._global[turn.action](turn)
        return await self._states[state](turn)

    # ── global choices ──────────────────────────────────────────────────────
    async def _on_menu(self, turn: Turn) -> List[Renderable]:
        return [texts.main_menu(turn.user)]

    async def _on_my_shipments(self, turn: Turn) -> List[Renderable]:
        return [texts.shipments_list(await turn.uow.orders.shipments_of(turn.user.id))]

    async def _on_my_drafts(self, turn: Turn) -> List[Renderable]:
        return [texts.drafts_list(await turn.uow.orders.drafts_of(turn.user.id))]

    async def _owned_order(self, turn: Turn) -> Order:
        order_id = parse_index(turn.argument)
        order = await turn.uow.orders.get(order_id) if order_id is not None else None
        if order is None or order.owner_user_id != turn.user.id:
            raise NotFound("order", turn.argument)
        return order

    async def _on_edit_draft(self, turn: Turn) -> List[Renderable]:
        order = await self._owned_order(turn)
        if not order.is_draft:
            raise NotFound("draft", order.id)
        user = turn.user
        user.buffer = order.line_items()
        user.pending_draft_order_id = order.id
        user.conversation_state = IntakeState.reviewing_order
        return [texts.editing_draft(order), texts.order_preview(user.buffer)]

    async def _on_finalize_draft(self, turn: Turn) -> List[Renderable]:
        order = await self._owned_order(turn)
        user = turn.user
        was_editing = user.pending_draft_order_id == order.id
        await self.lifecycle.finalize(turn.uow, order.id, turn.effects)
        if was_editing and IntakeState(user.conversation_state).is_building:
            user.reset_intake(IntakeState.idle)
        return [texts.order_finalized(order), texts.main_menu(user)]

    async def _on_start_order(self, turn: Turn) -> List[Renderable]:
        turn.user.reset_intake(IntakeState.choosing_category, clear_draft=True)
        return [await self._category_list(turn)]

    async def _on_cancel(self, turn: Turn) -> List[Renderable]:
        user = turn.user
        if IntakeState(user.conversation_state).is_building:
            user.reset_intake(IntakeState.idle, clear_draft=True)
            logger.info("intake_cancelled", user_id=user.id)
            return [texts.cancelled(), texts.main_menu(user)]
        user.reset_intake(IntakeState.idle)
        return [texts.main_menu(user)]

    async def _on_change_phone(self, turn: Turn) -> List[Renderable]:
        if IntakeState(turn.user.conversation_state).is_building:
            return [texts.finish_current_order_first(), *await self._prompt(turn)]
        turn.user.reset_intake(IntakeState.awaiting_phone)
        return [texts.phone_request()]

    async def _on_contact_support(self, turn: Turn) -> List[Renderable]:
        if IntakeState(turn.user.conversation_state).is_building:
            return [texts.finish_current_order_first(), *await self._prompt(turn)]
        turn.user.reset_intake(IntakeState.awaiting_support_message)
        return [texts.support_prompt()]

    # ── per-state handlers ──────────────────────────────────────────────────
    async def _idle(self, turn: Turn) -> List[Renderable]:
        if turn.action == ev.CHOICE_ADD_ITEM:
            return await self._resume_draft(turn)
        if turn.is_text:
            return [texts.main_menu(turn.user)]
        return await self._stale(turn)

    async def _resume_draft(self, turn: Turn) -> List[Renderable]:
        """``add-item`` after a confirm keeps extending the saved draft."""
        user = turn.user
        draft = None
        if user.pending_draft_order_id is not None:
            draft = await turn.uow.orders.get(user.pending_draft_order_id)
        if draft is None or not draft.is_draft or draft.owner_user_id != user.id:
            return await self._on_start_order(turn)
        user.buffer = draft.line_items()
        user.conversation_state = IntakeState.choosing_category
        return [await self._category_list(turn)]

    async def _choosing_category(self, turn: Turn) -> List[Renderable]:
        if turn.action == ev.CHOICE_CATEGORY:
            return await self._open_category(turn)
        if turn.action == ev.CHOICE_CUSTOM_PRODUCT:
            return self._ask_custom_product(turn)
        return await self._stale(turn)

    async def _choosing_product(self, turn: Turn) -> List[Renderable]:
        if turn.action == ev.CHOICE_PRODUCT:
            product_id = parse_index(turn.argument)
            product = await turn.uow.catalog.get_product(product_id) if product_id is not None else None
            if product is None:
                raise NotFound("product", turn.argument)
            return self._append_item(turn, product.name)
        if turn.action == ev.CHOICE_CUSTOM_PRODUCT:
            return self._ask_custom_product(turn)
        if turn.action == ev.CHOICE_ADD_ITEM:
            turn.user.conversation_state = IntakeState.choosing_category
            return [await self._category_list(turn)]
        if turn.action == ev.CHOICE_CATEGORY:
            return await self._open_category(turn)
        return await self._stale(turn)

    async def _awaiting_custom_product_name(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return await self._stale(turn)
        return self._append_item(turn, parse_product_name(turn.event.text))

    async def _awaiting_quantity(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return await self._stale(turn)
        items = self._require_last_item(turn)
        items[-1] = items[-1].with_quantity(parse_quantity(turn.event.text))
        turn.user.buffer = items
        turn.user.conversation_state = IntakeState.awaiting_line_total
        return [texts.line_total_prompt()]

    async def _awaiting_line_total(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return await self._stale(turn)
        items = self._require_last_item(turn)
        items[-1] = items[-1].with_line_total(parse_amount(turn.event.text))
        turn.user.buffer = items
        turn.user.conversation_state = IntakeState.reviewing_order
        logger.info("intake_item_completed", user_id=turn.user.id, product=items[-1].product)
        return [texts.order_preview(items)]

    async def _reviewing_order(self, turn: Turn) -> List[Renderable]:
        user = turn.user
        if turn.action == ev.CHOICE_ADD_ITEM:
            user.conversation_state = IntakeState.choosing_category
            return [await self._category_list(turn)]
        if turn.action == ev.CHOICE_REMOVE_ITEM:
            items = user.buffer
            index = parse_index(turn.argument)
            if index is None or not 0 <= index < len(items):
                return [Renderable("⚠️ That item is no longer in the manifest."), texts.order_preview(items)]
            removed = items.pop(index)
            user.buffer = items
            logger.info("intake_item_removed", user_id=user.id, product=removed.product)
            return [texts.order_preview(items)]
        if turn.action == ev.CHOICE_CONFIRM_ORDER:
            order = await self.lifecycle.upsert_draft(turn.uow, user, user.buffer)
            user.reset_intake(IntakeState.idle)
            return [texts.draft_saved(order)]
        return await self._stale(turn)

    async def _awaiting_phone(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            if not turn.user.phone:
                return [texts.phone_request()]
            return await self._stale(turn)
        phone = normalize_phone(turn.event.text)
        user = turn.user
        user.phone = phone
        user.reset_intake(IntakeState.idle)
        logger.info("phone_saved", user_id=user.id)
        return [texts.phone_saved(phone), texts.main_menu(user)]

    async def _awaiting_support_message(self, turn: Turn) -> List[Renderable]:
        if not turn.is_text:
            return await self._stale(turn)
        text = turn.event.stripped_text
        if not text:
            raise ValidationError("✍️ Send your question as a text message.")
        if len(text) > MAX_SUPPORT_MESSAGE_LENGTH:
            raise ValidationError(f"⚠️ Keep the message under {MAX_SUPPORT_MESSAGE_LENGTH} characters.")
        user = turn.user
        turn.effects.add(self.notifier.notify_admins, texts.support_forward(user, text))
        user.reset_intake(IntakeState.idle)
        logger.info("support_message_queued", user_id=user.id)
        return [texts.support_sent(), texts.main_menu(user)]

    # ── helpers ─────────────────────────────────────────────────────────────
    async def _category_list(self, turn: Turn) -> Renderable:
        categories = await turn.uow.catalog.list_categories()
        return texts.category_list(categories, has_items=bool(turn.user.order_buffer))

    async def _open_category(self, turn: Turn) -> List[Renderable]:
        category_id = parse_index(turn.argument)
        category = await turn.uow.catalog.get_category(category_id) if category_id is not None else None
        if category is None:
            raise NotFound("category", turn.argument)
        products = await turn.uow.catalog.list_products(category.id)
        turn.user.conversation_state = IntakeState.choosing_product
        return [texts.product_list(category, products)]

    def _ask_custom_product(self, turn: Turn) -> List[Renderable]:
        turn.user.conversation_state = IntakeState.awaiting_custom_product_name
        return [texts.custom_product_prompt()]

    def _append_item(self, turn: Turn, product: str) -> List[Renderable]:
        items = turn.user.buffer
        items.append(LineItem(product=product))
        turn.user.buffer = items
        turn.user.conversation_state = IntakeState.awaiting_quantity
        return [texts.quantity_prompt(product)]

    def _require_last_item(self, turn: Turn) -> List[LineItem]:
        items = turn.user.buffer
        if not items:
            raise NotFound("order item", "last")
        return items

    async def _stale(self, turn: Turn) -> List[Renderable]:
        logger.info(
            "intake_stale_event",
            user_id=turn.user.id,
            state=IntakeState(turn.user.conversation_state).value,
            choice_id=turn.event.choice_id,
        )
        return [texts.action_not_available(), *await self._prompt(turn)]

    async def _prompt(self, turn: Turn) -> List[Renderable]:
        """Re-render the prompt of the current state."""
        user = turn.user
        state = IntakeState(user.conversation_state)
        if state is IntakeState.idle:
            return [texts.main_menu(user)]
        if state is IntakeState.choosing_category:
            return [await self._category_list(turn)]
        if state is IntakeState.choosing_product:
            return [texts.pick_product_hint()]
        if state is IntakeState.awaiting_custom_product_name:
            return [texts.custom_product_prompt()]
        if state is IntakeState.awaiting_quantity:
            items = user.buffer
            return [texts.quantity_prompt(items[-1].product if items else "the product")]
        if state is IntakeState.awaiting_line_total:
            return [texts.line_total_prompt()]
        if state is IntakeState.reviewing_order:
            return [texts.order_preview(user.buffer)]
        if state is IntakeState.awaiting_phone:
            return [texts.phone_request()]
        return [texts.support_prompt()]
