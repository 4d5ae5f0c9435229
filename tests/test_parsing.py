"""Tests for the free-text parsers."""

from decimal import Decimal

import pytest

from manifest_bot.core.errors import ValidationError
from manifest_bot.core.events import make_choice_id, parse_choice
from manifest_bot.core.parsing import (
    looks_like_phone,
    normalize_phone,
    parse_amount,
    parse_index,
    parse_product_name,
    parse_quantity,
    parse_tracking_number,
    parse_tracking_url,
)


@pytest.mark.parametrize("text,expected", [("3", 3), (" 12 ", 12), ("1", 1), ("007", 7), ("100000", 100000)])
def test_parse_quantity_accepts_positive_integers(text, expected):
    assert parse_quantity(text) == expected


@pytest.mark.parametrize(
    "text", ["0", "000", "-1", "abc", "2.5", "", "3 pcs", "100001", "99999999999999999999", "1" * 5000]
)
def test_parse_quantity_rejects_invalid(text):
    with pytest.raises(ValidationError):
        parse_quantity(text)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("9.99", Decimal("9.99")),
        ("9,99", Decimal("9.99")),
        ("5", Decimal("5.00")),
        ("0", Decimal("0.00")),
        ("1 250,5", Decimal("1250.50")),
        ("2.005", Decimal("2.01")),
        ("99999999.99", Decimal("99999999.99")),
        ("0.0000000000000000000000000001", Decimal("0.00")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize(
    "text", ["-1", "abc", "", "1.2.3", "€5", "100000000", "99999999.995", "1234567890123456789012345678"]
)
def test_parse_amount_rejects_invalid(text):
    with pytest.raises(ValidationError):
        parse_amount(text)


def test_normalize_phone():
    assert normalize_phone("+34 600 000 000") == "+34600000000"
    assert normalize_phone("34600000000") == "+34600000000"
    assert normalize_phone("+7 (912) 345-67-89") == "+79123456789"


@pytest.mark.parametrize("text", ["", "hello", "+12345", "+1234567890123456", "600-abc-000"])
def test_normalize_phone_rejects_invalid(text):
    with pytest.raises(ValidationError):
        normalize_phone(text)
    assert not looks_like_phone(text)


def test_parse_product_name_collapses_whitespace():
    assert parse_product_name("  Gift   box ") == "Gift box"
    with pytest.raises(ValidationError):
        parse_product_name("   ")
    with pytest.raises(ValidationError):
        parse_product_name("x" * 500)


def test_parse_tracking_number_length():
    assert parse_tracking_number(" ABC123 ") == "ABC123"
    with pytest.raises(ValidationError):
        parse_tracking_number("AB12")


@pytest.mark.parametrize("text", ["none", "NONE", " None "])
def test_parse_tracking_url_none_token(text):
    assert parse_tracking_url(text) == ""


def test_parse_tracking_url_requires_scheme():
    assert parse_tracking_url("https://example.com/t/ABC123") == "https://example.com/t/ABC123"
    assert parse_tracking_url("http://track.me/1") == "http://track.me/1"
    with pytest.raises(ValidationError):
        parse_tracking_url("example.com/t/ABC123")


def test_parse_index():
    assert parse_index("2") == 2
    assert parse_index("-1") == -1
    assert parse_index("x") is None
    assert parse_index(None) is None


def test_choice_ids():
    assert parse_choice("remove-item:2") == ("remove-item", "2")
    assert parse_choice("confirm-order") == ("confirm-order", None)
    assert make_choice_id("edit-draft", 7) == "edit-draft:7"
    assert make_choice_id("menu") == "menu"
