from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from whatsapp_gateway.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        """Newest first."""
        ...

    async def recent(
        self,
        conversation_id: UUID,
        *,
        limit: int,
        exclude_id: UUID | None = None,
    ) -> list[Message]:
        """The last ``limit`` messages in chronological order."""
        ...


class MessageWriter(Protocol):
    async def add(self, message: Message) -> Message: ...

    async def update_status(
        self,
        wire_message_id: str,
        status: str,
        ts: datetime,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Apply a delivery status if it moves the row forward. Returns whether a row changed."""
        ...

    async def set_reply(self, message_id: UUID, reply_text: str) -> None: ...
