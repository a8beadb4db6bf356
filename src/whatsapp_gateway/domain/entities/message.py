from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    direction: str
    type: str
    content: str | None
    status: str
    created_at: datetime
    wire_message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    template_name: str | None = None
    template_variables: list[str] = field(default_factory=list)
    media_id: str | None = None
    media_type: str | None = None
    media_caption: str | None = None
    reply_text: str | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
