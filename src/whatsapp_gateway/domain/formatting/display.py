"""Small display helpers for template variables and composed messages."""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from whatsapp_gateway.domain.formatting.markup import BULLET

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "CA$",
    "JPY": "¥",
}


def format_price(amount: float | int | Decimal | str, currency: str = "USD") -> str:
    """Whole-unit price with thousands separators, e.g. ``$12,500``."""
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,}"


def format_date(value: date | datetime | str) -> str:
    """``Wed, Apr 1, 2026``."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return f"{value:%a}, {value:%b} {value.day}, {value.year}"


def format_list(items: list[str], numbered: bool = False) -> str:
    if numbered:
        return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start=1))
    return "\n".join(f"{BULLET}{item}" for item in items)


def format_section(header: str, content: str) -> str:
    return f"*{header}*\n{content}"
