from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from whatsapp_gateway.application.dto.session import SessionStatus
from whatsapp_gateway.services.session_service import format_remaining


class ConversationResponse(BaseModel):
    id: UUID
    phone_number: str
    display_name: str | None
    customer_id: int | None
    customer_name: str | None
    customer_email: str | None
    message_count: int
    is_session_active: bool
    last_message_at: datetime | None

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    is_active: bool
    window_start: datetime | None
    window_end: datetime | None
    remaining_seconds: int
    remaining: str
    requires_template: bool

    @classmethod
    def from_status(cls, status: SessionStatus) -> SessionResponse:
        return cls(
            is_active=status.is_active,
            window_start=status.window_start,
            window_end=status.window_end,
            remaining_seconds=max(0, int(status.remaining.total_seconds())),
            remaining=format_remaining(status.remaining),
            requires_template=status.requires_template,
        )
