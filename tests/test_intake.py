"""Conversation tests for the customer intake state machine."""

from decimal import Decimal

import pytest

from manifest_bot.models import IntakeState, OrderStatus

from tests.helpers import (
    ADMIN,
    CUSTOMER,
    CUSTOMER_PHONE,
    OTHER_CUSTOMER,
    WA_CUSTOMER,
    all_text,
    build_first_item,
    choice_ids,
    line,
    load_user,
    register,
    say,
    tap,
)


async def _drafts(uow_factory, identity):
    async with uow_factory() as uow:
        user = await uow.users.by_identity(identity)
        return await uow.orders.drafts_of(user.id)


@pytest.mark.asyncio
async def test_scenario_a_single_item_draft(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)

    replies = await tap(engine, CUSTOMER, "start-order")
    assert f"category:{catalog['c1']}" in choice_ids(replies[0])

    replies = await tap(engine, CUSTOMER, f"category:{catalog['c1']}")
    assert f"product:{catalog['p1']}" in choice_ids(replies[0])

    await tap(engine, CUSTOMER, f"product:{catalog['p1']}")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_quantity
    assert user.buffer == [line("P1", 0, "0")]

    await say(engine, CUSTOMER, "3")
    replies = await say(engine, CUSTOMER, "9.99")
    assert "P1 — 3 pcs, total 9.99€" in replies[0].text
    assert "Total: 9.99€" in replies[0].text

    replies = await tap(engine, CUSTOMER, "confirm-order")

    drafts = await _drafts(uow_factory, CUSTOMER)
    assert len(drafts) == 1
    order = drafts[0]
    assert order.status == OrderStatus.draft
    assert order.line_items() == [line("P1", 3, "9.99")]
    assert order.total_sum == Decimal("9.99")
    assert order.client_phone == CUSTOMER_PHONE
    assert f"edit-draft:{order.id}" in choice_ids(replies[0])
    assert f"finalize-draft:{order.id}" in choice_ids(replies[0])

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle
    assert user.buffer == []
    assert user.pending_draft_order_id == order.id


@pytest.mark.asyncio
async def test_scenario_b_add_item_updates_same_draft(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "confirm-order")
    first_id = (await _drafts(uow_factory, CUSTOMER))[0].id

    await tap(engine, CUSTOMER, "add-item")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.choosing_category

    await tap(engine, CUSTOMER, "custom-product")
    await say(engine, CUSTOMER, "Gift box")
    await say(engine, CUSTOMER, "1")
    await say(engine, CUSTOMER, "5.00")
    await tap(engine, CUSTOMER, "confirm-order")

    drafts = await _drafts(uow_factory, CUSTOMER)
    assert len(drafts) == 1
    assert drafts[0].id == first_id
    assert drafts[0].line_items() == [line("P1", 3, "9.99"), line("Gift box", 1, "5.00")]
    assert drafts[0].total_sum == Decimal("14.99")


@pytest.mark.asyncio
async def test_edit_draft_and_reconfirm_is_idempotent(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "confirm-order")
    order_id = (await _drafts(uow_factory, CUSTOMER))[0].id

    replies = await tap(engine, CUSTOMER, f"edit-draft:{order_id}")
    assert "P1 — 3 pcs" in all_text(replies)
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.reviewing_order
    assert user.pending_draft_order_id == order_id

    await tap(engine, CUSTOMER, "confirm-order")
    await tap(engine, CUSTOMER, f"edit-draft:{order_id}")
    await tap(engine, CUSTOMER, "confirm-order")

    drafts = await _drafts(uow_factory, CUSTOMER)
    assert [d.id for d in drafts] == [order_id]
    assert drafts[0].total_sum == Decimal("9.99")


@pytest.mark.asyncio
async def test_scenario_d_confirm_with_empty_buffer(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)

    replies = await tap(engine, CUSTOMER, "remove-item:0")
    assert "(empty)" in replies[0].text

    replies = await tap(engine, CUSTOMER, "confirm-order")
    assert "empty" in replies[0].text

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.reviewing_order
    assert await _drafts(uow_factory, CUSTOMER) == []


@pytest.mark.asyncio
async def test_confirm_from_idle_creates_nothing(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)

    replies = await tap(engine, CUSTOMER, "confirm-order")

    assert "no longer available" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle
    assert await _drafts(uow_factory, CUSTOMER) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["abc", "0", "-2", "1.5"])
async def test_invalid_quantity_self_loops(engine, uow_factory, catalog, bad):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")
    await tap(engine, CUSTOMER, f"product:{catalog['p1']}")

    replies = await say(engine, CUSTOMER, bad)

    assert "whole number" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_quantity
    assert user.buffer == [line("P1", 0, "0")]


@pytest.mark.asyncio
async def test_invalid_total_self_loops_and_comma_is_accepted(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")
    await tap(engine, CUSTOMER, f"product:{catalog['p2']}")
    await say(engine, CUSTOMER, "2")

    await say(engine, CUSTOMER, "-5")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_line_total

    await say(engine, CUSTOMER, "12,5")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.reviewing_order
    assert user.buffer == [line("P2", 2, "12.50")]


@pytest.mark.asyncio
async def test_completed_items_always_have_positive_quantity(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog, quantity="1", total="0")
    await tap(engine, CUSTOMER, "add-item")
    await tap(engine, CUSTOMER, f"category:{catalog['c2']}")
    await tap(engine, CUSTOMER, f"product:{catalog['p3']}")
    await say(engine, CUSTOMER, "0")
    await say(engine, CUSTOMER, "4")
    await say(engine, CUSTOMER, "7")

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.reviewing_order
    assert all(item.quantity > 0 and item.line_total >= 0 for item in user.buffer)
    assert user.buffer == [line("P1", 1, "0"), line("P3", 4, "7")]


@pytest.mark.asyncio
async def test_remove_out_of_range_self_loops(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)

    replies = await tap(engine, CUSTOMER, "remove-item:5")

    assert "no longer in the manifest" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.reviewing_order
    assert len(user.buffer) == 1


@pytest.mark.asyncio
async def test_cancel_clears_buffer_and_draft_reference(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "confirm-order")
    order_id = (await _drafts(uow_factory, CUSTOMER))[0].id
    await tap(engine, CUSTOMER, f"edit-draft:{order_id}")

    replies = await tap(engine, CUSTOMER, "cancel-order")

    assert "cancelled" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle
    assert user.buffer == []
    assert user.pending_draft_order_id is None
    # The saved draft itself is untouched.
    assert len(await _drafts(uow_factory, CUSTOMER)) == 1


@pytest.mark.asyncio
async def test_start_order_discards_buffer(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)

    await tap(engine, CUSTOMER, "start-order")

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.choosing_category
    assert user.buffer == []


@pytest.mark.asyncio
async def test_stale_choice_keeps_state(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")

    replies = await tap(engine, CUSTOMER, "remove-item:0")

    assert "no longer available" in replies[0].text
    assert f"category:{catalog['c1']}" in choice_ids(replies[1])
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.choosing_category


@pytest.mark.asyncio
async def test_missing_category_resets_to_idle(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")

    replies = await tap(engine, CUSTOMER, "category:9999")

    assert "not found" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle
    assert user.buffer == []


@pytest.mark.asyncio
async def test_missing_product_resets_to_idle(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "add-item")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")

    await tap(engine, CUSTOMER, "product:9999")

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle
    assert user.buffer == []


@pytest.mark.asyncio
async def test_edit_foreign_draft_is_not_found(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "confirm-order")
    order_id = (await _drafts(uow_factory, CUSTOMER))[0].id

    await register(engine, OTHER_CUSTOMER, phone="+34699999999")
    replies = await tap(engine, OTHER_CUSTOMER, f"edit-draft:{order_id}")

    assert "not found" in replies[0].text
    other = await load_user(uow_factory, OTHER_CUSTOMER)
    assert other.buffer == []
    assert other.pending_draft_order_id is None


@pytest.mark.asyncio
async def test_finalize_draft_from_chat(engine, uow_factory, catalog, ledger):
    await register(engine, CUSTOMER)
    await build_first_item(engine, CUSTOMER, catalog)
    await tap(engine, CUSTOMER, "confirm-order")
    order_id = (await _drafts(uow_factory, CUSTOMER))[0].id

    replies = await tap(engine, CUSTOMER, f"finalize-draft:{order_id}")
    assert "has been sent" in replies[0].text

    # A second tap on the same button must not export twice.
    replies = await tap(engine, CUSTOMER, f"finalize-draft:{order_id}")
    assert "cannot be changed" in replies[0].text

    assert [row.id for row in ledger.rows] == [order_id]
    user = await load_user(uow_factory, CUSTOMER)
    assert user.pending_draft_order_id is None

    replies = await tap(engine, CUSTOMER, "my-shipments")
    assert f"#{order_id}" in replies[0].text
    assert "Processing" in replies[0].text
    replies = await tap(engine, CUSTOMER, "my-drafts")
    assert "no drafts" in replies[0].text


@pytest.mark.asyncio
async def test_queries_do_not_change_state(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")

    for choice in ("menu", "my-shipments", "my-drafts"):
        await tap(engine, CUSTOMER, choice)

    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.choosing_product


@pytest.mark.asyncio
async def test_phone_is_requested_before_anything_else(engine, uow_factory, catalog):
    replies = await tap(engine, CUSTOMER, "start-order")
    assert "phone number" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_phone

    replies = await say(engine, CUSTOMER, "call me maybe")
    assert "does not look like a phone" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.phone is None

    replies = await say(engine, CUSTOMER, "+34 600 000 000")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.phone == CUSTOMER_PHONE
    assert user.conversation_state == IntakeState.idle
    assert "start-order" in choice_ids(replies[1])


@pytest.mark.asyncio
async def test_change_phone_outside_building_states(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)

    await tap(engine, CUSTOMER, "change-phone")
    await say(engine, CUSTOMER, "+34 622 222 222")
    user = await load_user(uow_factory, CUSTOMER)
    assert user.phone == "+34622222222"

    await tap(engine, CUSTOMER, "start-order")
    replies = await tap(engine, CUSTOMER, "change-phone")
    assert "first" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.choosing_category


@pytest.mark.asyncio
async def test_whatsapp_user_gets_phone_from_identity(engine, uow_factory, catalog):
    await tap(engine, WA_CUSTOMER, "start-order")

    user = await load_user(uow_factory, WA_CUSTOMER)
    assert user.phone == "+34611111111"
    assert user.conversation_state == IntakeState.choosing_category


@pytest.mark.asyncio
async def test_support_message_is_forwarded_to_admins(engine, uow_factory, catalog, telegram_channel):
    await tap(engine, ADMIN, "admin-exit")
    await register(engine, CUSTOMER)

    await tap(engine, CUSTOMER, "contact-support")
    replies = await say(engine, CUSTOMER, "Where is my parcel?")

    assert "sent to the operator" in replies[0].text
    forwarded = telegram_channel.texts_for(ADMIN)
    assert len(forwarded) == 1
    assert "Where is my parcel?" in forwarded[0]
    assert CUSTOMER_PHONE in forwarded[0]
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.idle


@pytest.mark.asyncio
async def test_oversized_quantity_self_loops(engine, uow_factory, catalog):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")
    await tap(engine, CUSTOMER, f"product:{catalog['p1']}")

    replies = await say(engine, CUSTOMER, "99999999999999999999")

    assert "too large" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_quantity
    assert user.buffer == [line("P1", 0, "0")]

    await say(engine, CUSTOMER, "2")
    await say(engine, CUSTOMER, "4")
    await tap(engine, CUSTOMER, "confirm-order")
    drafts = await _drafts(uow_factory, CUSTOMER)
    assert [d.total_sum for d in drafts] == [Decimal("4.00")]


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["1234567890123456789012345678", "100000000"])
async def test_oversized_total_self_loops(engine, uow_factory, catalog, bad):
    await register(engine, CUSTOMER)
    await tap(engine, CUSTOMER, "start-order")
    await tap(engine, CUSTOMER, f"category:{catalog['c1']}")
    await tap(engine, CUSTOMER, f"product:{catalog['p1']}")
    await say(engine, CUSTOMER, "3")

    replies = await say(engine, CUSTOMER, bad)

    assert "too large" in replies[0].text
    user = await load_user(uow_factory, CUSTOMER)
    assert user.conversation_state == IntakeState.awaiting_line_total
    assert user.buffer == [line("P1", 3, "0")]
    assert await _drafts(uow_factory, CUSTOMER) == []
