from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.domain.value_objects.enums import STATUS_PREDECESSORS, DeliveryStatus
from whatsapp_gateway.infrastructure.db.mappers import message as mapper
from whatsapp_gateway.infrastructure.db.models.message import MessageModel

_TIMESTAMP_COLUMNS = {
    DeliveryStatus.SENT: "sent_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.READ: "read_at",
}


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def recent(
        self,
        conversation_id: UUID,
        *,
        limit: int,
        exclude_id: UUID | None = None,
    ) -> list[Message]:
        stmt = select(MessageModel).where(MessageModel.conversation_id == conversation_id)
        if exclude_id is not None:
            stmt = stmt.where(MessageModel.id != exclude_id)
        stmt = stmt.order_by(MessageModel.created_at.desc(), MessageModel.id.desc()).limit(limit)
        result = await self._session.execute(stmt)
        rows = [mapper.model_to_entity(m) for m in result.scalars().all()]
        rows.reverse()
        return rows


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def update_status(
        self,
        wire_message_id: str,
        status: str,
        ts: datetime,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        target = DeliveryStatus(status)
        values: dict[str, Any] = {"status": target}
        column = _TIMESTAMP_COLUMNS.get(target)
        if column is not None:
            values[column] = ts
        if target == DeliveryStatus.FAILED:
            values["error_code"] = error_code
            values["error_message"] = error_message

        stmt = (
            update(MessageModel)
            .where(
                MessageModel.wire_message_id == wire_message_id,
                MessageModel.status.in_([s.value for s in STATUS_PREDECESSORS[target]]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def set_reply(self, message_id: UUID, reply_text: str) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(reply_text=reply_text)
        )
        await self._session.execute(stmt)
