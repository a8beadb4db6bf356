from __future__ import annotations

from typing import Any, Protocol


class WebhookQueue(Protocol):
    async def enqueue(self, payload: dict[str, Any]) -> str: ...
