from __future__ import annotations

import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from whatsapp_gateway.application.dto.conversation import ConversationFilterDTO
from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.domain.value_objects.enums import ConversationFilter
from whatsapp_gateway.infrastructure.db.mappers import conversation as mapper
from whatsapp_gateway.infrastructure.db.models.conversation import ConversationModel


def _apply_filter(stmt: Select, filters: ConversationFilterDTO) -> Select:
    if filters.filter == ConversationFilter.UNLINKED:
        stmt = stmt.where(ConversationModel.customer_id.is_(None))
    elif filters.filter == ConversationFilter.ACTIVE:
        stmt = stmt.where(ConversationModel.is_session_active.is_(True))
    return stmt


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_by_phone(self, phone_number: str) -> Conversation | None:
        stmt = select(ConversationModel).where(ConversationModel.phone_number == phone_number)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_expired_active(self, threshold: datetime) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                ConversationModel.is_session_active.is_(True),
                or_(
                    ConversationModel.session_window_start.is_(None),
                    ConversationModel.session_window_start < threshold,
                ),
            )
            .order_by(ConversationModel.session_window_start.asc().nullsfirst())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_for_admin(self, filters: ConversationFilterDTO) -> list[Conversation]:
        stmt = _apply_filter(select(ConversationModel), filters)
        stmt = (
            stmt.order_by(
                ConversationModel.last_message_at.desc().nullslast(),
                ConversationModel.id,
            )
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count(self, filters: ConversationFilterDTO) -> int:
        stmt = _apply_filter(select(func.count()).select_from(ConversationModel), filters)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_or_create(
        self,
        phone_number: str,
        display_name: str | None,
        ts: datetime,
    ) -> tuple[Conversation, bool]:
        stmt = (
            pg_insert(ConversationModel)
            .values(
                id=uuid.uuid4(),
                phone_number=phone_number,
                display_name=display_name,
                message_count=0,
                is_session_active=False,
                created_at=ts,
                updated_at=ts,
            )
            .on_conflict_do_nothing(index_elements=["phone_number"])
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        # Lost the race (or already known): read the winner.
        existing = await self._session.execute(
            select(ConversationModel).where(ConversationModel.phone_number == phone_number)
        )
        return mapper.model_to_entity(existing.scalar_one()), False

    async def update_display_name(self, conversation_id: UUID, display_name: str) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(display_name=display_name)
        )
        await self._session.execute(stmt)

    async def record_inbound(self, conversation_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                message_count=ConversationModel.message_count + 1,
                last_message_at=func.greatest(ConversationModel.last_message_at, ts),
            )
        )
        await self._session.execute(stmt)

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=func.greatest(ConversationModel.last_message_at, ts))
        )
        await self._session.execute(stmt)

    async def start_session(self, conversation_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                session_window_start=func.greatest(ConversationModel.session_window_start, ts),
                is_session_active=True,
            )
        )
        await self._session.execute(stmt)

    async def end_session(self, conversation_id: UUID) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(is_session_active=False)
        )
        await self._session.execute(stmt)

    async def set_customer(self, conversation_id: UUID, customer_id: int | None) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(customer_id=customer_id)
        )
        await self._session.execute(stmt)
