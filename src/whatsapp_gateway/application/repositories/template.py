from __future__ import annotations

from typing import Protocol

from whatsapp_gateway.domain.entities.template import Template


class TemplateReader(Protocol):
    async def get_by_name(self, name: str) -> Template | None: ...
