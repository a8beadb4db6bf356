from __future__ import annotations

from typing import Protocol

from whatsapp_gateway.domain.entities.customer import Customer


class CustomerReader(Protocol):
    async def get_by_id(self, customer_id: int) -> Customer | None: ...

    async def find_by_whatsapp_phone(self, phone: str) -> Customer | None: ...

    async def find_by_phone_suffix(self, suffix: str) -> Customer | None:
        """First customer whose phone or WhatsApp number ends with ``suffix``."""
        ...


class CustomerWriter(Protocol):
    async def create_if_not_exists(
        self,
        *,
        email: str,
        name: str | None,
        phone: str,
        whatsapp_phone_number: str,
        source: str,
    ) -> tuple[Customer, bool]:
        """Insert keyed on the unique WhatsApp number. Returns (customer, created)."""
        ...

    async def set_whatsapp_phone_if_empty(self, customer_id: int, phone: str) -> None: ...
