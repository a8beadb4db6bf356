from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class SessionStatus:
    is_active: bool
    window_start: datetime | None
    window_end: datetime | None
    remaining: timedelta

    @property
    def requires_template(self) -> bool:
        return not self.is_active

    @classmethod
    def inactive(cls) -> SessionStatus:
        return cls(is_active=False, window_start=None, window_end=None, remaining=timedelta(0))
