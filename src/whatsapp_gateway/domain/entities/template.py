from __future__ import annotations

import re
from dataclasses import dataclass

_PLACEHOLDER_RE = re.compile(r"\{\{(\d+)\}\}")


@dataclass(frozen=True, slots=True)
class Template:
    """Read-only catalog entry for a pre-approved template."""

    name: str
    language: str
    variable_count: int
    body_text: str | None
    status: str = "approved"

    def render(self, variables: list[str]) -> str | None:
        """Fill ``{{n}}`` placeholders positionally; unknown positions are left as-is."""
        if self.body_text is None:
            return None

        def _sub(match: re.Match[str]) -> str:
            index = int(match.group(1)) - 1
            if 0 <= index < len(variables):
                return variables[index]
            return match.group(0)

        return _PLACEHOLDER_RE.sub(_sub, self.body_text)
