from __future__ import annotations

from whatsapp_gateway.domain.entities.template import Template
from whatsapp_gateway.infrastructure.db.models.template import MessageTemplateModel


def model_to_entity(model: MessageTemplateModel) -> Template:
    return Template(
        name=model.name,
        language=model.language,
        variable_count=model.variable_count,
        body_text=model.body_text,
        status=model.status,
    )
