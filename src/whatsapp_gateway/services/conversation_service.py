from __future__ import annotations

from datetime import datetime
from uuid import UUID

from whatsapp_gateway.application.dto.conversation import (
    ConversationDetails,
    ConversationFilterDTO,
)
from whatsapp_gateway.application.dto.session import SessionStatus
from whatsapp_gateway.application.exceptions import NotFoundError
from whatsapp_gateway.application.uow import UnitOfWork
from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.services import session_service


async def _require(conversation_id: UUID, uow: UnitOfWork) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


async def _details(conversation: Conversation, uow: UnitOfWork) -> ConversationDetails:
    customer = None
    if conversation.customer_id is not None:
        customer = await uow.customers.get_by_id(conversation.customer_id)
    return ConversationDetails(
        id=conversation.id,
        phone_number=conversation.phone_number,
        display_name=conversation.display_name,
        customer_id=conversation.customer_id,
        customer_name=customer.name if customer else None,
        customer_email=customer.email if customer else None,
        message_count=conversation.message_count,
        is_session_active=conversation.is_session_active,
        last_message_at=conversation.last_message_at,
    )


async def get_conversation(conversation_id: UUID, uow: UnitOfWork) -> ConversationDetails:
    """Conversation with the linked customer's name and email, if any."""
    return await _details(await _require(conversation_id, uow), uow)


async def get_conversation_messages(
    conversation_id: UUID,
    uow: UnitOfWork,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[Message]:
    await _require(conversation_id, uow)
    return await uow.messages.list_messages(conversation_id, limit=limit, offset=offset)


async def list_conversations(
    filters: ConversationFilterDTO, uow: UnitOfWork,
) -> tuple[list[ConversationDetails], int]:
    conversations = await uow.conversations.list_for_admin(filters)
    total = await uow.conversations.count(filters)
    return [await _details(c, uow) for c in conversations], total


async def get_session(conversation_id: UUID, uow: UnitOfWork, now: datetime) -> SessionStatus:
    conversation = await _require(conversation_id, uow)
    status = await session_service.session_status_for(conversation, uow, now)
    await uow.commit()
    return status


async def end_session(conversation_id: UUID, uow: UnitOfWork) -> None:
    await _require(conversation_id, uow)
    await session_service.end_session(conversation_id, uow)
    await uow.commit()
