from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from whatsapp_gateway.domain.entities.customer import Customer
from whatsapp_gateway.infrastructure.db.mappers import customer as mapper
from whatsapp_gateway.infrastructure.db.models.customer import CustomerModel


class CustomerReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, customer_id: int) -> Customer | None:
        result = await self._session.get(CustomerModel, customer_id)
        return mapper.model_to_entity(result) if result else None

    async def find_by_whatsapp_phone(self, phone: str) -> Customer | None:
        stmt = select(CustomerModel).where(CustomerModel.whatsapp_phone_number == phone).limit(1)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def find_by_phone_suffix(self, suffix: str) -> Customer | None:
        stmt = (
            select(CustomerModel)
            .where(CustomerModel.phone.ilike(f"%{suffix}%"))
            .order_by(CustomerModel.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class CustomerWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(
        self,
        *,
        email: str,
        name: str | None,
        phone: str,
        whatsapp_phone_number: str,
        source: str,
    ) -> tuple[Customer, bool]:
        stmt = (
            pg_insert(CustomerModel)
            .values(
                email=email,
                name=name,
                phone=phone,
                whatsapp_phone_number=whatsapp_phone_number,
                source=source,
                is_active=True,
            )
            .on_conflict_do_nothing(index_elements=["whatsapp_phone_number"])
            .returning(CustomerModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        existing = await self._session.execute(
            select(CustomerModel).where(
                CustomerModel.whatsapp_phone_number == whatsapp_phone_number
            )
        )
        return mapper.model_to_entity(existing.scalar_one()), False

    async def set_whatsapp_phone_if_empty(self, customer_id: int, phone: str) -> None:
        stmt = (
            update(CustomerModel)
            .where(
                CustomerModel.id == customer_id,
                CustomerModel.whatsapp_phone_number.is_(None),
            )
            .values(whatsapp_phone_number=phone)
        )
        await self._session.execute(stmt)
