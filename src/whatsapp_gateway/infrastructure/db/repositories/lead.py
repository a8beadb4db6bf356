from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from whatsapp_gateway.infrastructure.db.models.lead import LeadEventModel, LeadScoreModel


class LeadRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def init_score(
        self,
        customer_id: int,
        *,
        score: int,
        status: str,
        source: str,
        ts: datetime,
    ) -> None:
        stmt = (
            pg_insert(LeadScoreModel)
            .values(
                customer_id=customer_id,
                current_score=score,
                status=status,
                source=source,
                total_conversations=1,
                last_activity_at=ts,
            )
            .on_conflict_do_nothing(index_elements=["customer_id"])
        )
        await self._session.execute(stmt)

    async def get_score(self, customer_id: int) -> int | None:
        stmt = select(LeadScoreModel.current_score).where(LeadScoreModel.customer_id == customer_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_score(self, customer_id: int, score: int, ts: datetime) -> None:
        stmt = (
            update(LeadScoreModel)
            .where(LeadScoreModel.customer_id == customer_id)
            .values(current_score=score, last_activity_at=ts)
        )
        await self._session.execute(stmt)

    async def record_event(
        self,
        customer_id: int,
        *,
        event_type: str,
        event_data: dict[str, Any],
        score_change: int,
        score_before: int | None,
        score_after: int | None,
        source: str,
    ) -> None:
        self._session.add(
            LeadEventModel(
                customer_id=customer_id,
                event_type=event_type,
                event_data=event_data,
                score_change=score_change,
                score_before=score_before,
                score_after=score_after,
                source=source,
            )
        )
        await self._session.flush()
