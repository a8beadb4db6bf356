from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from whatsapp_gateway.domain.value_objects.enums import ConversationFilter


@dataclass(frozen=True, slots=True)
class ConversationFilterDTO:
    filter: ConversationFilter = ConversationFilter.ALL
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True, slots=True)
class ConversationDetails:
    id: UUID
    phone_number: str
    display_name: str | None
    customer_id: int | None
    customer_name: str | None
    customer_email: str | None
    message_count: int
    is_session_active: bool
    last_message_at: datetime | None
