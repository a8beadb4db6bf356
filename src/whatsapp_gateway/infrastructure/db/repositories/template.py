from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from whatsapp_gateway.domain.entities.template import Template
from whatsapp_gateway.infrastructure.db.mappers import template as mapper
from whatsapp_gateway.infrastructure.db.models.template import MessageTemplateModel


class TemplateReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_name(self, name: str) -> Template | None:
        stmt = select(MessageTemplateModel).where(MessageTemplateModel.name == name)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None
