from __future__ import annotations

from typing import Protocol

from whatsapp_gateway.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns an admin API bearer token into a Principal, raising on any defect."""

    async def verify(self, token: str) -> Principal: ...
