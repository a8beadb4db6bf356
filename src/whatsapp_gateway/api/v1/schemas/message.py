from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    direction: str
    type: str
    content: str | None
    status: str
    wire_message_id: str | None
    error_code: str | None
    error_message: str | None
    template_name: str | None
    template_variables: list[str]
    media_id: str | None
    media_type: str | None
    media_caption: str | None
    reply_text: str | None
    sent_at: datetime | None
    delivered_at: datetime | None
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
