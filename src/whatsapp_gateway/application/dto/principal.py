from __future__ import annotations

from dataclasses import dataclass, field

from whatsapp_gateway.domain.value_objects.enums import PrincipalKind


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    kind: PrincipalKind
    subject_id: str
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.kind in (PrincipalKind.ADMIN, PrincipalKind.SERVICE) or "admin" in self.roles
