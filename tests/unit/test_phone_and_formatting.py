from __future__ import annotations

from datetime import date, datetime

import pytest

from whatsapp_gateway.domain.formatting.display import (
    format_date,
    format_list,
    format_price,
    format_section,
)
from whatsapp_gateway.domain.formatting.markup import (
    BULLET,
    HORIZONTAL_RULE,
    strip_formatting,
    to_wire_markup,
)
from whatsapp_gateway.domain.value_objects.phone import (
    format_phone_for_display,
    normalize_phone_number,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+977 123-456-7890", "9771234567890"),
        ("00441234567890", "441234567890"),
        ("(555) 010 9999", "5550109999"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


@pytest.mark.parametrize("raw", ["+1 (555) 010-9999", "0000441234", "00 00 977 1", "abc"])
def test_normalize_phone_number_is_idempotent(raw):
    once = normalize_phone_number(raw)
    assert normalize_phone_number(once) == once


def test_format_phone_for_display():
    assert format_phone_for_display("9771234567") == "+9771234567"
    assert format_phone_for_display("12345") == "12345"


def test_to_wire_markup_converts_markdown():
    text = "# Trip\n**Bold** and ~~gone~~ see [site](https://x.io)\n- one\n* two\n---\nuse `code`"

    result = to_wire_markup(text)

    assert result.splitlines() == [
        "*Trip*",
        "*Bold* and ~gone~ see site: https://x.io",
        f"{BULLET}one",
        f"{BULLET}two",
        HORIZONTAL_RULE,
        "use ```code```",
    ]


def test_to_wire_markup_strips_tags_and_collapses_blank_lines():
    assert to_wire_markup("<b>hi</b>\n\n\n\nthere  ") == "hi\n\nthere"


def test_strip_formatting():
    text = f"*Bold* _it_ ~no~ ```x```\n{BULLET}item\n{HORIZONTAL_RULE}"
    assert strip_formatting(text) == "Bold it no x\n- item\n---"


def test_format_price():
    assert format_price(12500) == "$12,500"
    assert format_price("99.5", "eur") == "€100"
    assert format_price(1000, "NPR") == "NPR 1,000"


def test_format_date():
    assert format_date(date(2026, 4, 1)) == "Wed, Apr 1, 2026"
    assert format_date(datetime(2026, 4, 1, 18, 30)) == "Wed, Apr 1, 2026"
    assert format_date("2026-04-01T00:00:00Z") == "Wed, Apr 1, 2026"


def test_format_list():
    assert format_list(["a", "b"], numbered=True) == "1. a\n2. b"
    assert format_list(["a"]) == f"{BULLET}a"


def test_format_section():
    assert format_section("Itinerary", "Day 1: Kathmandu") == "*Itinerary*\nDay 1: Kathmandu"
