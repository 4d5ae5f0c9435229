"""
Telegram adapter.

Handlers turn updates into :class:`IntakeEvent` objects, hand them to the
engine and send the replies back. ``engine`` and ``telegram_channel`` are
injected through the dispatcher's workflow data.
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message, User as TgUser

from manifest_bot.core import events as ev
from manifest_bot.core.engine import ConversationEngine
from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.events import Identity, IntakeEvent, Renderable, TelegramId
from manifest_bot.core.interfaces import NotificationChannel

from .keyboards import build_inline_keyboard

logger = structlog.get_logger()
router = Router(name=__name__)

TELEGRAM_TEXT_LIMIT = 4096


def split_text(text: str, limit: int = TELEGRAM_TEXT_LIMIT) -> List[str]:
    """Split on line breaks so that every chunk fits into one message."""
    if len(text) <= limit:
        return [text]
    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class TelegramChannel(NotificationChannel):
    def __init__(self, bot: Bot):
        self.bot = bot

    def accepts(self, identity: Identity) -> bool:
        return isinstance(identity, TelegramId)

    async def send(self, identity: Identity, message: Renderable) -> None:
        chunks = split_text(message.text or " ")
        keyboard = build_inline_keyboard(message.choices)
        try:
            for i, chunk in enumerate(chunks):
                last = i == len(chunks) - 1
                await self.bot.send_message(
                    chat_id=identity.value,
                    text=chunk,
                    reply_markup=keyboard if last else None,
                )
        except TelegramAPIError as exc:
            raise ExternalDependencyFailure("telegram", str(exc)) from exc


def _display_name(user: Optional[TgUser]) -> Optional[str]:
    return user.full_name if user else None


async def _process(event: IntakeEvent, engine: ConversationEngine, telegram_channel: TelegramChannel) -> None:
    replies = await engine.handle(event)
    for reply in replies:
        try:
            await telegram_channel.send(event.identity, reply)
        except ExternalDependencyFailure as exc:
            logger.error("telegram_reply_failed", identity=event.identity.key, error=str(exc))


def _choice(m: Message, choice_id: str) -> IntakeEvent:
    return IntakeEvent.choice(TelegramId(m.from_user.id), choice_id, _display_name(m.from_user))


@router.message(CommandStart())
async def cmd_start(m: Message, engine: ConversationEngine, telegram_channel: TelegramChannel):
    await _process(_choice(m, ev.CHOICE_MENU), engine, telegram_channel)


@router.message(Command("admin"))
async def cmd_admin(m: Message, engine: ConversationEngine, telegram_channel: TelegramChannel):
    await _process(_choice(m, ev.CHOICE_ADMIN_SEARCH), engine, telegram_channel)


@router.message(Command("cancel"))
async def cmd_cancel(m: Message, engine: ConversationEngine, telegram_channel: TelegramChannel):
    await _process(_choice(m, ev.CHOICE_CANCEL_ORDER), engine, telegram_channel)


@router.message(F.contact)
async def handle_contact(m: Message, engine: ConversationEngine, telegram_channel: TelegramChannel):
    event = IntakeEvent.free_text(
        TelegramId(m.from_user.id), m.contact.phone_number, _display_name(m.from_user)
    )
    await _process(event, engine, telegram_channel)


@router.message(F.text)
async def handle_text(m: Message, engine: ConversationEngine, telegram_channel: TelegramChannel):
    event = IntakeEvent.free_text(TelegramId(m.from_user.id), m.text, _display_name(m.from_user))
    await _process(event, engine, telegram_channel)


@router.callback_query(F.data)
async def handle_callback(c: CallbackQuery, engine: ConversationEngine, telegram_channel: TelegramChannel):
    await c.answer()
    event = IntakeEvent.choice(TelegramId(c.from_user.id), c.data, _display_name(c.from_user))
    await _process(event, engine, telegram_channel)
