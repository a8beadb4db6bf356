from __future__ import annotations

from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        phone_number=model.phone_number,
        display_name=model.display_name,
        customer_id=model.customer_id,
        message_count=model.message_count,
        last_message_at=model.last_message_at,
        session_window_start=model.session_window_start,
        is_session_active=model.is_session_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
