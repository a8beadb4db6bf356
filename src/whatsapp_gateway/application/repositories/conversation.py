from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from whatsapp_gateway.application.dto.conversation import ConversationFilterDTO
from whatsapp_gateway.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_phone(self, phone_number: str) -> Conversation | None: ...

    async def list_expired_active(self, threshold: datetime) -> list[Conversation]:
        """Conversations flagged active whose window started before ``threshold`` (or never)."""
        ...

    async def list_for_admin(self, filters: ConversationFilterDTO) -> list[Conversation]: ...

    async def count(self, filters: ConversationFilterDTO) -> int: ...


class ConversationWriter(Protocol):
    async def get_or_create(
        self,
        phone_number: str,
        display_name: str | None,
        ts: datetime,
    ) -> tuple[Conversation, bool]:
        """Insert-if-absent keyed by phone number. Returns (conversation, created)."""
        ...

    async def update_display_name(self, conversation_id: UUID, display_name: str) -> None: ...

    async def record_inbound(self, conversation_id: UUID, ts: datetime) -> None:
        """Atomically bump message_count and move last_message_at forward."""
        ...

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None: ...

    async def start_session(self, conversation_id: UUID, ts: datetime) -> None: ...

    async def end_session(self, conversation_id: UUID) -> None: ...

    async def set_customer(self, conversation_id: UUID, customer_id: int | None) -> None: ...
