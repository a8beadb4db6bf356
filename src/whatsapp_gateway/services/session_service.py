"""24-hour customer-service window per conversation.

The window opens (or restarts) on every inbound message and is never touched
by outbound sends. Expiry is derived from ``session_window_start`` and written
back lazily the first time it is observed. Functions here do not commit; the
calling unit of work owns the transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from whatsapp_gateway.application.dto.session import SessionStatus
from whatsapp_gateway.application.ports.clock import as_utc
from whatsapp_gateway.application.uow import UnitOfWork
from whatsapp_gateway.domain.entities.conversation import Conversation

logger = logging.getLogger(__name__)

SESSION_WINDOW = timedelta(hours=24)


async def refresh_session(conversation_id: UUID, uow: UnitOfWork, now: datetime) -> SessionStatus:
    await uow.conversations_w.start_session(conversation_id, now)
    return SessionStatus(
        is_active=True,
        window_start=now,
        window_end=now + SESSION_WINDOW,
        remaining=SESSION_WINDOW,
    )


async def session_status_for(
    conversation: Conversation, uow: UnitOfWork, now: datetime,
) -> SessionStatus:
    if not conversation.is_session_active or conversation.session_window_start is None:
        return SessionStatus.inactive()

    window_start = as_utc(conversation.session_window_start)
    window_end = window_start + SESSION_WINDOW
    remaining = window_end - as_utc(now)
    if remaining <= timedelta(0):
        await uow.conversations_w.end_session(conversation.id)
        logger.info("Session window expired for conversation %s", conversation.id)
        return SessionStatus.inactive()

    return SessionStatus(
        is_active=True,
        window_start=window_start,
        window_end=window_end,
        remaining=remaining,
    )


async def get_session_status(
    conversation_id: UUID, uow: UnitOfWork, now: datetime,
) -> SessionStatus:
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        return SessionStatus.inactive()
    return await session_status_for(conversation, uow, now)


async def end_session(conversation_id: UUID, uow: UnitOfWork) -> None:
    await uow.conversations_w.end_session(conversation_id)


async def expired_sessions(uow: UnitOfWork, now: datetime) -> list[Conversation]:
    return await uow.conversations.list_expired_active(as_utc(now) - SESSION_WINDOW)


def format_remaining(remaining: timedelta) -> str:
    if remaining <= timedelta(0):
        return "expired"
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
