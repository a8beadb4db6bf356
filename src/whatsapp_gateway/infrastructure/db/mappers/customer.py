from __future__ import annotations

from whatsapp_gateway.domain.entities.customer import Customer
from whatsapp_gateway.infrastructure.db.models.customer import CustomerModel


def model_to_entity(model: CustomerModel) -> Customer:
    return Customer(
        id=model.id,
        email=model.email,
        name=model.name,
        phone=model.phone,
        whatsapp_phone_number=model.whatsapp_phone_number,
        source=model.source,
    )
