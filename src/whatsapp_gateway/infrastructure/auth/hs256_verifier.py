from __future__ import annotations

import jwt

from whatsapp_gateway.application.dto.principal import Principal
from whatsapp_gateway.domain.value_objects.enums import PrincipalKind


class HS256Verifier:
    """Verify admin API bearer tokens signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        if not self._secret:
            raise jwt.InvalidTokenError("JWT secret is not configured")
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            options={"require": ["sub"]},
        )
        kind_raw = payload.get("kind", payload.get("role", PrincipalKind.USER))
        kind = PrincipalKind(kind_raw) if kind_raw in set(PrincipalKind) else PrincipalKind.USER
        roles = payload.get("roles", [])
        return Principal(
            kind=kind,
            subject_id=str(payload["sub"]),
            roles=list(roles) if isinstance(roles, list) else [],
        )
