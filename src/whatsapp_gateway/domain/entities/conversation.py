from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    phone_number: str
    display_name: str | None
    customer_id: int | None
    message_count: int
    last_message_at: datetime | None
    session_window_start: datetime | None
    is_session_active: bool
    created_at: datetime
    updated_at: datetime
