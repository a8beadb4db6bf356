from __future__ import annotations

from whatsapp_gateway.application.dto.principal import Principal
from whatsapp_gateway.application.exceptions import ForbiddenError


def assert_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")
