"""
Parsers for free-text input.

Every parser returns the normalised value or raises
:class:`~manifest_bot.core.errors.ValidationError` with a message that can be
shown to the user as a re-prompt.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .constants import (
    CURRENCY_SYMBOL,
    MAX_LINE_TOTAL,
    MAX_PHONE_DIGITS,
    MAX_PRODUCT_NAME_LENGTH,
    MAX_QUANTITY,
    MAX_TRACKING_NUMBER_LENGTH,
    MIN_PHONE_DIGITS,
    MIN_TRACKING_NUMBER_LENGTH,
    MONEY_QUANT,
    NO_URL_TOKEN,
)
from .errors import ValidationError

_QUANTITY_RE = re.compile(r"^\d+$")
_AMOUNT_RE = re.compile(r"^\d+(?:[.,]\d+)?$")
_PHONE_CHARS_RE = re.compile(r"^\+?[\d\s\-().]+$")
_URL_SCHEME_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


def parse_quantity(text: str) -> int:
    """Whole number of pieces, strictly positive."""
    value = (text or "").strip()
    if not _QUANTITY_RE.match(value) or not value.strip("0"):
        raise ValidationError("⚠️ Enter the quantity as a whole number greater than zero (e.g. 3).")
    digits = value.lstrip("0")
    if len(digits) > len(str(MAX_QUANTITY)) or int(digits) > MAX_QUANTITY:
        raise ValidationError(f"⚠️ The quantity is too large, the limit is {MAX_QUANTITY} pieces per line.")
    return int(digits)


def parse_amount(text: str) -> Decimal:
    """Non-negative amount; comma is accepted as decimal separator. Rounded to cents."""
    value = (text or "").strip().replace(" ", "")
    if not _AMOUNT_RE.match(value):
        raise ValidationError("⚠️ Enter the total amount for this line, e.g. 19.99 or 19,99.")
    try:
        amount = Decimal(value.replace(",", "."))
        if amount <= MAX_LINE_TOTAL:
            amount = amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError("⚠️ Enter the total amount for this line, e.g. 19.99 or 19,99.") from exc
    if amount > MAX_LINE_TOTAL:
        raise ValidationError(f"⚠️ The amount is too large, the limit is {MAX_LINE_TOTAL}{CURRENCY_SYMBOL} per line.")
    return amount


def normalize_phone(text: Optional[str]) -> str:
    """
    Canonical ``+<digits>`` form of a phone number.

    Spaces, dashes, dots and parentheses are dropped; a leading ``+`` is added
    when missing.
    """
    value = (text or "").strip()
    if not value or not _PHONE_CHARS_RE.match(value):
        raise ValidationError("❌ That does not look like a phone number. Use the international format, e.g. +34600000000.")
    digits = re.sub(r"\D", "", value)
    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
        raise ValidationError("❌ That does not look like a phone number. Use the international format, e.g. +34600000000.")
    return f"+{digits}"


def looks_like_phone(text: Optional[str]) -> bool:
    try:
        normalize_phone(text)
    except ValidationError:
        return False
    return True


def parse_product_name(text: str) -> str:
    value = " ".join((text or "").split())
    if not value:
        raise ValidationError("✍️ Send the product name as a text message.")
    if len(value) > MAX_PRODUCT_NAME_LENGTH:
        raise ValidationError(f"⚠️ The name is too long, keep it under {MAX_PRODUCT_NAME_LENGTH} characters.")
    return value


def parse_tracking_number(text: str) -> str:
    value = (text or "").strip()
    if len(value) < MIN_TRACKING_NUMBER_LENGTH:
        raise ValidationError(
            f"⚠️ A tracking number has at least {MIN_TRACKING_NUMBER_LENGTH} characters. Try again:"
        )
    if len(value) > MAX_TRACKING_NUMBER_LENGTH:
        raise ValidationError(f"⚠️ A tracking number has at most {MAX_TRACKING_NUMBER_LENGTH} characters.")
    return value


def parse_tracking_url(text: str) -> str:
    """Tracking page URL; the ``none`` token (any case) means no URL and yields ``""``."""
    value = (text or "").strip()
    if value.lower() == NO_URL_TOKEN:
        return ""
    if not _URL_SCHEME_RE.match(value):
        raise ValidationError(
            f"⚠️ The link must start with http:// or https://. Try again or send '{NO_URL_TOKEN}'."
        )
    return value


def parse_index(argument: Optional[str]) -> Optional[int]:
    """Integer argument of a choice id, or None when it is not a number."""
    if argument is None or not re.match(r"^-?\d+$", argument):
        return None
    return int(argument)
