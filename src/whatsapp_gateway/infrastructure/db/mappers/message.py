from __future__ import annotations

from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        direction=model.direction,
        type=model.type,
        content=model.content,
        status=model.status,
        created_at=model.created_at,
        wire_message_id=model.wire_message_id,
        error_code=model.error_code,
        error_message=model.error_message,
        template_name=model.template_name,
        template_variables=list(model.template_variables or []),
        media_id=model.media_id,
        media_type=model.media_type,
        media_caption=model.media_caption,
        reply_text=model.reply_text,
        sent_at=model.sent_at,
        delivered_at=model.delivered_at,
        read_at=model.read_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        direction=entity.direction,
        wire_message_id=entity.wire_message_id,
        type=entity.type,
        content=entity.content,
        status=entity.status,
        error_code=entity.error_code,
        error_message=entity.error_message,
        template_name=entity.template_name,
        template_variables=entity.template_variables or None,
        media_id=entity.media_id,
        media_type=entity.media_type,
        media_caption=entity.media_caption,
        reply_text=entity.reply_text,
        sent_at=entity.sent_at,
        delivered_at=entity.delivered_at,
        read_at=entity.read_at,
        created_at=entity.created_at,
    )
