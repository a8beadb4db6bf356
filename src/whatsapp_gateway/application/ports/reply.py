from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol


@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: Literal["user", "assistant"]
    content: str


class ReplyGenerator(Protocol):
    """Opaque reply engine: text in, text out. An empty string means no reply."""

    async def generate(
        self,
        text: str,
        customer_id: int | None,
        history: list[ChatTurn],
    ) -> str: ...
