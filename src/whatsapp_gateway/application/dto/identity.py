from __future__ import annotations

from dataclasses import dataclass

from whatsapp_gateway.domain.entities.customer import Customer


@dataclass(frozen=True, slots=True)
class LinkResult:
    success: bool
    linked: bool
    customer_id: int | None
    customer: Customer | None
    message: str
    created: bool = False

    @classmethod
    def failure(cls, message: str) -> LinkResult:
        return cls(success=False, linked=False, customer_id=None, customer=None, message=message)
