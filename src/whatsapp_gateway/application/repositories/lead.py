from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class LeadRepository(Protocol):
    async def init_score(
        self,
        customer_id: int,
        *,
        score: int,
        status: str,
        source: str,
        ts: datetime,
    ) -> None: ...

    async def get_score(self, customer_id: int) -> int | None: ...

    async def update_score(self, customer_id: int, score: int, ts: datetime) -> None: ...

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
    ) -> None: ...
