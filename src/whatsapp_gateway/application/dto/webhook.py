from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class InboundMessage:
    sender: str
    sender_name: str
    wire_message_id: str
    timestamp: datetime
    type: str
    text: str | None = None
    media_id: str | None = None
    media_type: str | None = None
    caption: str | None = None


@dataclass(frozen=True, slots=True)
class StatusEvent:
    wire_message_id: str
    status: str
    timestamp: datetime
    recipient_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(slots=True)
class ParsedWebhook:
    messages: list[InboundMessage] = field(default_factory=list)
    statuses: list[StatusEvent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
