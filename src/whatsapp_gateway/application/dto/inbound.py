from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ProcessedMessage:
    conversation_id: UUID
    message_id: UUID
    sender: str
    text: str
    reply: str | None
    customer_id: int | None
    is_new_conversation: bool = False


@dataclass(slots=True)
class ProcessResult:
    messages: list[ProcessedMessage] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    statuses_applied: int = 0

    @property
    def success(self) -> bool:
        return not self.errors
