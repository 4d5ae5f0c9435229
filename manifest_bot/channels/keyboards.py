"""
Inline keyboards for Telegram replies.
"""

from __future__ import annotations

from typing import Optional, Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from manifest_bot.core.events import Choice


def build_inline_keyboard(choices: Sequence[Choice]) -> Optional[InlineKeyboardMarkup]:
    """
    One button per row, callback data is the choice id.

    :param choices: choices of a Renderable
    :return: keyboard, or None when there is nothing to choose
    """
    if not choices:
        return None
    buttons = [
        [InlineKeyboardButton(text=choice.label, callback_data=choice.choice_id)]
        for choice in choices
    ]
    return InlineKeyboardMarkup(inline_keyboard=buttons)
