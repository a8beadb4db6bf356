from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class SendOptions:
    force_template: bool = False
    template_name: str | None = None
    template_variables: list[str] | None = None
    skip_session_check: bool = False


@dataclass(frozen=True, slots=True)
class SendResult:
    success: bool
    message_ids: list[str] = field(default_factory=list)
    chunks_count: int = 0
    used_template: bool = False
    error: str | None = None
    failed_chunks: list[int] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """Some, but not all, chunks were accepted by the provider."""
        return bool(self.message_ids) and bool(self.failed_chunks)

    @classmethod
    def failure(cls, error: str, *, used_template: bool = False) -> SendResult:
        return cls(success=False, used_template=used_template, error=error)
