from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Customer:
    """CRM customer record, limited to the fields the gateway reads or writes."""

    id: int
    email: str
    name: str | None
    phone: str | None
    whatsapp_phone_number: str | None
    source: str | None = None
