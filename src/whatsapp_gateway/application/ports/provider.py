from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class SendOutcome:
    """Result of one provider call. ``message_id`` is set only when accepted."""

    message_id: str | None
    status_code: int | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.message_id is not None


class MessagingProvider(Protocol):
    async def send_text(self, to: str, body: str) -> SendOutcome: ...

    async def send_template(
        self,
        to: str,
        template_name: str,
        language: str,
        components: list[dict[str, Any]] | None = None,
    ) -> SendOutcome: ...

    async def mark_read(self, message_id: str) -> bool: ...
