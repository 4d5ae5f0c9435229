"""
Renderers for user-visible messages.

Each function returns a :class:`Renderable`; the channel adapters turn the
choices into buttons or lists.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from manifest_bot.models import Category, Order, OrderStatus, Product, User

from . import events as ev
from .constants import CURRENCY_SYMBOL, NO_URL_TOKEN
from .events import Choice, Renderable
from .types import LineItem, OrderSnapshot

STATUS_LABELS = {
    OrderStatus.draft.value: "📝 Draft",
    OrderStatus.processing.value: "⏳ Processing",
    OrderStatus.shipped.value: "📦 Shipped",
    OrderStatus.delivered.value: "✅ Delivered",
    OrderStatus.cancelled.value: "❌ Cancelled",
}


def money(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f}{CURRENCY_SYMBOL}"


def status_label(status) -> str:
    value = getattr(status, "value", status)
    return STATUS_LABELS.get(value, str(value))


def _date(value) -> str:
    return value.strftime("%d.%m.%Y") if value else "unknown date"


# ── menu & profile ───────────────────────────────────────────────────────────
def main_menu(user: Optional[User] = None) -> Renderable:
    choices = [
        Choice("📦 Create manifest", ev.CHOICE_START_ORDER),
        Choice("🧾 My shipments", ev.CHOICE_MY_SHIPMENTS),
        Choice("✏️ My drafts", ev.CHOICE_MY_DRAFTS),
        Choice("🆘 Contact operator", ev.CHOICE_CONTACT_SUPPORT),
        Choice("🔄 Change phone", ev.CHOICE_CHANGE_PHONE),
    ]
    if user is not None and user.is_admin:
        choices.append(Choice("🔎 Admin: find order", ev.CHOICE_ADMIN_SEARCH))
    return Renderable("📋 Main menu. Choose an action:", tuple(choices))


def phone_request() -> Renderable:
    return Renderable("⚠️ To continue, send your phone number in international format (e.g. +34600000000).")


def phone_saved(phone: str) -> Renderable:
    return Renderable(f"✅ Your number is saved: {phone}")


def support_prompt() -> Renderable:
    return Renderable(
        "👨‍💻 Describe your problem in one message:",
        (Choice("❌ Cancel", ev.CHOICE_CANCEL_ORDER),),
    )


def support_sent() -> Renderable:
    return Renderable("✅ Your message has been sent to the operator.")


def support_forward(user: User, text: str) -> Renderable:
    return Renderable(
        "🆘 Support request\n"
        f"👤 From: {user.display_name or 'unknown'} ({user.identity.key})\n"
        f"📞 Phone: {user.phone or 'not set'}\n\n"
        f"💬 {text}"
    )


def finish_current_order_first() -> Renderable:
    return Renderable("✋ Save or cancel the manifest you are building first.")


def action_not_available() -> Renderable:
    return Renderable("🤔 That action is no longer available here.")


def admin_only() -> Renderable:
    return Renderable("⛔ You do not have administrator rights for this action.")


def cancelled() -> Renderable:
    return Renderable("❌ Manifest cancelled.")


def not_found(entity: str) -> Renderable:
    return Renderable(f"⚠️ {entity.capitalize()} not found. Please start again.")


def invalid_transition(current, requested) -> Renderable:
    return Renderable(
        f"⚠️ The order is {status_label(current)}, it cannot be changed to {status_label(requested)}."
    )


# ── catalog ──────────────────────────────────────────────────────────────────
def category_list(categories: Sequence[Category], has_items: bool = False) -> Renderable:
    choices = [Choice(cat.label, ev.make_choice_id(ev.CHOICE_CATEGORY, cat.id)) for cat in categories]
    choices.append(Choice("➕ Add your own product", ev.CHOICE_CUSTOM_PRODUCT))
    if has_items:
        choices.append(Choice("❌ Cancel manifest", ev.CHOICE_CANCEL_ORDER))
    text = "Choose a category:" if categories else "There are no categories yet. Add your own product:"
    return Renderable(text, tuple(choices))


def product_list(category: Category, products: Sequence[Product]) -> Renderable:
    choices = [Choice(p.name, ev.make_choice_id(ev.CHOICE_PRODUCT, p.id)) for p in products]
    choices.append(Choice("➕ Add your own product", ev.CHOICE_CUSTOM_PRODUCT))
    choices.append(Choice("⬅️ Categories", ev.CHOICE_ADD_ITEM))
    return Renderable(f"📝 Category: {category.label}. Choose a product:", tuple(choices))


def pick_product_hint() -> Renderable:
    return Renderable(
        "👆 Pick a product from the list above or choose another category.",
        (
            Choice("➕ Add your own product", ev.CHOICE_CUSTOM_PRODUCT),
            Choice("⬅️ Categories", ev.CHOICE_ADD_ITEM),
        ),
    )


def custom_product_prompt() -> Renderable:
    return Renderable("✍️ Enter the product name:")


def quantity_prompt(product: str) -> Renderable:
    return Renderable(f"Enter the quantity (pieces) for \"{product}\":")


def line_total_prompt() -> Renderable:
    return Renderable("💰 Enter the total amount for this line (e.g. 19.99):")


# ── order preview & drafts ───────────────────────────────────────────────────
def _item_line(index: int, item: LineItem) -> str:
    return f"{index}. {item.product} — {item.quantity} pcs, total {money(item.line_total)}"


def order_preview(items: Sequence[LineItem]) -> Renderable:
    total = sum((item.line_total for item in items), Decimal("0"))
    lines = "\n".join(_item_line(i + 1, item) for i, item in enumerate(items)) or "(empty)"
    choices: List[Choice] = [
        Choice(f"🗑 Remove {item.product}", ev.make_choice_id(ev.CHOICE_REMOVE_ITEM, i))
        for i, item in enumerate(items)
    ]
    choices += [
        Choice("➕ Add item", ev.CHOICE_ADD_ITEM),
        Choice("✅ Save manifest", ev.CHOICE_CONFIRM_ORDER),
        Choice("❌ Cancel", ev.CHOICE_CANCEL_ORDER),
    ]
    return Renderable(f"📦 Current manifest:\n\n{lines}\n\nTotal: {money(total)}", tuple(choices))


def draft_saved(order: Order) -> Renderable:
    return Renderable(
        f"✅ Saved as draft {order.short_id}. Total: {money(order.total_sum)}.\n"
        "You can edit it or send it for processing.",
        (
            Choice("➕ Add item", ev.CHOICE_ADD_ITEM),
            Choice("✏️ Edit", ev.make_choice_id(ev.CHOICE_EDIT_DRAFT, order.id)),
            Choice("🚀 Send", ev.make_choice_id(ev.CHOICE_FINALIZE_DRAFT, order.id)),
        ),
    )


def editing_draft(order: Order) -> Renderable:
    return Renderable(f"✏️ Editing draft {order.short_id}.")


def order_finalized(order: Order) -> Renderable:
    return Renderable(f"🚀 Manifest {order.short_id} has been sent!")


def nothing_to_save() -> Renderable:
    return Renderable("⚠️ The manifest is empty, add at least one item first.")


def shipments_list(orders: Sequence[Order]) -> Renderable:
    if not orders:
        return Renderable("📭 You have no shipments yet.")
    blocks = []
    for order in orders:
        block = (
            f"🔹 Order {order.short_id} from {_date(order.created_at)}\n"
            f"💰 Total: {money(order.total_sum)}\n"
            f"🚦 Status: {status_label(order.status)}"
        )
        if order.tracking_number:
            block += f"\n🚛 Tracking: {order.tracking_number}"
        if order.tracking_url:
            block += f"\n🔗 {order.tracking_url}"
        blocks.append(block)
    return Renderable("📦 Your shipments:\n\n" + "\n──────────────────\n".join(blocks))


def drafts_list(orders: Sequence[Order]) -> Renderable:
    if not orders:
        return Renderable("🙌 You have no drafts.")
    choices = []
    for order in orders:
        label = f"{order.short_id} {_date(order.created_at)} ({money(order.total_sum)})"
        choices.append(Choice(f"✏️ {label}", ev.make_choice_id(ev.CHOICE_EDIT_DRAFT, order.id)))
        choices.append(Choice(f"🚀 Send {order.short_id}", ev.make_choice_id(ev.CHOICE_FINALIZE_DRAFT, order.id)))
    return Renderable("✏️ Your drafts:", tuple(choices))


# ── admin ────────────────────────────────────────────────────────────────────
def admin_search_prompt() -> Renderable:
    return Renderable(
        "🔎 Send the client's phone number:",
        (Choice("🚪 Exit admin mode", ev.CHOICE_ADMIN_EXIT),),
    )


def admin_no_order_for(phone: str) -> str:
    return f"❌ No order found for {phone}. Send another number:"


def admin_order_summary(order: Order) -> Renderable:
    items = "\n".join(_item_line(i + 1, item) for i, item in enumerate(order.line_items()))
    return Renderable(
        f"📄 Order found: {order.short_id}\n"
        f"📞 Phone: {order.client_phone or '-'}\n"
        f"{items}\n"
        f"💰 Total: {money(order.total_sum)}\n"
        f"🚦 Status: {status_label(order.status)}\n"
        f"🚛 Tracking: {order.tracking_number or 'not set'}",
        (
            Choice("🚛 Set tracking", ev.CHOICE_ADMIN_SET_TRACKING),
            Choice("✅ Mark delivered", ev.CHOICE_ADMIN_MARK_DELIVERED),
            Choice("⏳ Set processing", ev.CHOICE_ADMIN_SET_PROCESSING),
            Choice("❌ Cancel order", ev.CHOICE_ADMIN_MARK_CANCELLED),
            Choice("🚪 Exit", ev.CHOICE_ADMIN_EXIT),
        ),
    )


def admin_use_buttons() -> Renderable:
    return Renderable("👇 Use the buttons under the order.")


def tracking_number_prompt() -> Renderable:
    return Renderable("🔢 Enter the tracking number for this order:")


def tracking_url_prompt() -> Renderable:
    return Renderable(f"🔗 Now send the tracking link or '{NO_URL_TOKEN}':")


def admin_status_changed(order: Order) -> Renderable:
    return Renderable(f"✅ Order {order.short_id} is now {status_label(order.status)}. The client has been notified.")


def admin_tracking_saved(order: Order) -> Renderable:
    return Renderable(f"✅ Tracking saved for order {order.short_id}. The client has been notified.")


def admin_exited() -> Renderable:
    return Renderable("🚪 Admin mode closed.")


# ── notifications ────────────────────────────────────────────────────────────
def status_notification(order: OrderSnapshot) -> Renderable:
    return Renderable(f"🔔 Order #{order.id} status changed: {status_label(order.status)}")


def tracking_notification(order: OrderSnapshot) -> Renderable:
    text = "📦 Your parcel has been shipped!\n\n" f"🔢 Tracking number: {order.tracking_number}"
    if order.tracking_url:
        text += f"\n🌐 Track it here: {order.tracking_url}"
    return Renderable(text)
