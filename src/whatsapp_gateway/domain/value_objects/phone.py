"""Phone number canonicalization.

Best effort only: the canonical form is a join key, not a validated E.164
number.
"""
from __future__ import annotations

import re

_NON_DIGIT_RE = re.compile(r"\D")
# Repeated so that normalizing twice is a no-op ("0000…" would otherwise shrink again).
_INTERNATIONAL_PREFIX_RE = re.compile(r"^(?:00)+")


def normalize_phone_number(raw: str | None) -> str:
    digits = _NON_DIGIT_RE.sub("", raw or "")
    return _INTERNATIONAL_PREFIX_RE.sub("", digits)


def format_phone_for_display(phone: str) -> str:
    if len(phone) < 10:
        return phone
    return f"+{phone}"
