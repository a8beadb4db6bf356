"""Inbound webhook pipeline: persist, open the session window, link, reply."""
from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from datetime import datetime
from typing import Any
from uuid import UUID

from whatsapp_gateway.application.codec.webhook import parse_webhook
from whatsapp_gateway.application.dto.inbound import ProcessedMessage, ProcessResult
from whatsapp_gateway.application.dto.webhook import InboundMessage, StatusEvent
from whatsapp_gateway.application.ports.clock import Clock, SystemClock
from whatsapp_gateway.application.ports.provider import MessagingProvider
from whatsapp_gateway.application.ports.reply import ChatTurn, ReplyGenerator
from whatsapp_gateway.application.uow import UnitOfWork, UnitOfWorkFactory
from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.domain.formatting.chunker import format_ai_response
from whatsapp_gateway.domain.value_objects.enums import DeliveryStatus, Direction, MessageType
from whatsapp_gateway.services import identity_service, session_service
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Thank you for sharing that. How can I help with your travel plans?"
MEDIA_PROMPT = (
    "[The user sent a {type}. Briefly acknowledge it and ask how you can help "
    "with their travel plans.]"
)
ACKNOWLEDGED_MEDIA: frozenset[str] = frozenset({MessageType.IMAGE, MessageType.DOCUMENT})


class InboundProcessor:
    """Runs verified webhook payloads through the per-message pipeline.

    Different senders are processed concurrently; messages from one sender are
    handled one at a time, in arrival order, under a per-phone lock. Each
    message gets its own unit of work, and everything up to the session
    refresh is committed before the (slow) reply generator is called.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        dispatcher: DeliveryDispatcher,
        provider: MessagingProvider,
        reply_generator: ReplyGenerator,
        *,
        placeholder_domain: str,
        clock: Clock | None = None,
        history_limit: int = 20,
        reply_timeout: float = 45.0,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._provider = provider
        self._reply_generator = reply_generator
        self._placeholder_domain = placeholder_domain
        self._clock = clock or SystemClock()
        self._history_limit = history_limit
        self._reply_timeout = reply_timeout
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._background: set[asyncio.Task[None]] = set()

    async def process_webhook_payload(self, payload: Any) -> ProcessResult:
        parsed = parse_webhook(payload)
        result = ProcessResult(errors=list(parsed.errors))

        for event in parsed.statuses:
            try:
                if await self.update_message_status(event):
                    result.statuses_applied += 1
            except Exception as exc:
                logger.exception("Failed to apply status %s for %s", event.status, event.wire_message_id)
                result.errors.append(f"Status {event.wire_message_id}: {exc}")

        by_sender: dict[str, list[InboundMessage]] = {}
        for message in parsed.messages:
            by_sender.setdefault(message.sender, []).append(message)

        outcomes = await asyncio.gather(
            *(self._process_sender(messages) for messages in by_sender.values())
        )
        for processed, errors in outcomes:
            result.messages.extend(processed)
            result.errors.extend(errors)

        if result.messages or result.statuses_applied:
            logger.info(
                "Webhook processed: %d messages, %d statuses, %d errors",
                len(result.messages),
                result.statuses_applied,
                len(result.errors),
            )
        return result

    async def update_message_status(self, event: StatusEvent) -> bool:
        async with self._uow_factory() as uow:
            applied = await uow.messages_w.update_status(
                event.wire_message_id,
                event.status,
                event.timestamp,
                error_code=event.error_code,
                error_message=event.error_message,
            )
            await uow.commit()
        if not applied:
            logger.debug("Status %s for %s changed nothing", event.status, event.wire_message_id)
        elif event.status == DeliveryStatus.FAILED:
            logger.warning(
                "Message %s failed: %s %s",
                event.wire_message_id,
                event.error_code,
                event.error_message,
            )
        return applied

    async def load_history(
        self,
        conversation_id: UUID,
        uow: UnitOfWork,
        *,
        exclude_id: UUID | None = None,
    ) -> list[ChatTurn]:
        """Prior turns, oldest first, for the reply generator.

        An inbound message contributes the user turn and the reply recorded on
        it; outbound rows that are just the wire chunks of that reply are
        skipped so the assistant turn is not repeated.
        """
        rows = await uow.messages.recent(
            conversation_id, limit=self._history_limit, exclude_id=exclude_id
        )
        turns: list[ChatTurn] = []
        reply_chunks: set[str] = set()
        for row in rows:
            if row.direction == Direction.INBOUND:
                reply_chunks = set()
                if row.content:
                    turns.append(ChatTurn(role="user", content=row.content))
                if row.reply_text:
                    turns.append(ChatTurn(role="assistant", content=row.reply_text))
                    reply_chunks = set(format_ai_response(row.reply_text))
            elif row.content and row.content not in reply_chunks:
                turns.append(ChatTurn(role="assistant", content=row.content))
        return turns

    async def drain(self) -> None:
        """Wait for detached mark-as-read calls."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _lock_for(self, phone: str) -> asyncio.Lock:
        lock = self._locks.get(phone)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[phone] = lock
        return lock

    async def _process_sender(
        self, messages: list[InboundMessage],
    ) -> tuple[list[ProcessedMessage], list[str]]:
        processed: list[ProcessedMessage] = []
        errors: list[str] = []
        async with self._lock_for(messages[0].sender):
            for message in messages:
                try:
                    processed.append(await self.process_message(message))
                except Exception as exc:
                    logger.exception(
                        "Failed to process message %s from %s",
                        message.wire_message_id,
                        message.sender,
                    )
                    errors.append(f"Message {message.wire_message_id}: {exc}")
        return processed, errors

    async def process_message(self, message: InboundMessage) -> ProcessedMessage:
        now = self._clock.now()
        async with self._uow_factory() as uow:
            conversation, created = await uow.conversations_w.get_or_create(
                message.sender, message.sender_name or None, now
            )
            if (
                not created
                and message.sender_name
                and message.sender_name != conversation.display_name
            ):
                await uow.conversations_w.update_display_name(conversation.id, message.sender_name)

            stored = await uow.messages_w.add(
                Message(
                    id=uuid.uuid4(),
                    conversation_id=conversation.id,
                    direction=Direction.INBOUND,
                    type=message.type,
                    content=message.text if message.text is not None else message.caption,
                    status=DeliveryStatus.DELIVERED,
                    created_at=now,
                    wire_message_id=message.wire_message_id,
                    media_id=message.media_id,
                    media_type=message.media_type,
                    media_caption=message.caption,
                    delivered_at=message.timestamp,
                )
            )
            await uow.conversations_w.record_inbound(conversation.id, now)
            await session_service.refresh_session(conversation.id, uow, now)
            await uow.commit()

            self._mark_read_later(message.wire_message_id)

            customer_id = conversation.customer_id
            if created:
                logger.info("New WhatsApp conversation %s from %s", conversation.id, message.sender)
                customer_id = await self._resolve_customer(conversation.id, message, uow, now)

            reply = await self._reply(conversation.id, stored, message, customer_id, uow)

        return ProcessedMessage(
            conversation_id=conversation.id,
            message_id=stored.id,
            sender=message.sender,
            text=stored.content or "",
            reply=reply,
            customer_id=customer_id,
            is_new_conversation=created,
        )

    async def _resolve_customer(
        self,
        conversation_id: UUID,
        message: InboundMessage,
        uow: UnitOfWork,
        now: datetime,
    ) -> int | None:
        try:
            linked = await identity_service.auto_link(conversation_id, message.sender, uow, now)
            if linked.linked:
                return linked.customer_id

            created = await identity_service.create_from_contact(
                message.sender,
                message.sender_name or None,
                uow,
                now,
                placeholder_domain=self._placeholder_domain,
            )
            if not created.success or created.customer_id is None:
                logger.warning("Could not create customer for %s: %s", message.sender, created.message)
                return None
            linked = await identity_service.link(conversation_id, created.customer_id, uow, now)
            return linked.customer_id if linked.success else None
        except Exception:
            logger.exception("Customer resolution failed for conversation %s", conversation_id)
            await uow.rollback()
            return None

    async def _reply(
        self,
        conversation_id: UUID,
        stored: Message,
        message: InboundMessage,
        customer_id: int | None,
        uow: UnitOfWork,
    ) -> str | None:
        if message.type == MessageType.TEXT:
            text = (message.text or "").strip()
            if not text:
                return None
            history = await self.load_history(conversation_id, uow, exclude_id=stored.id)
            reply = await self._generate(text, customer_id, history)
        elif message.type in ACKNOWLEDGED_MEDIA:
            prompt = MEDIA_PROMPT.format(type=message.type)
            history = await self.load_history(conversation_id, uow, exclude_id=stored.id)
            reply = await self._generate(prompt, customer_id, history) or FALLBACK_REPLY
        else:
            return None

        if not reply.strip():
            return None

        result = await self._dispatcher.send(conversation_id, reply, uow)
        if not result.success:
            logger.warning("Reply to conversation %s was not delivered: %s", conversation_id, result.error)
            return None
        await uow.messages_w.set_reply(stored.id, reply)
        await uow.commit()
        return reply

    async def _generate(self, text: str, customer_id: int | None, history: list[ChatTurn]) -> str:
        try:
            reply = await asyncio.wait_for(
                self._reply_generator.generate(text, customer_id, history),
                timeout=self._reply_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Reply generator timed out after %.1fs", self._reply_timeout)
            return FALLBACK_REPLY
        except Exception:
            logger.exception("Reply generator failed")
            return FALLBACK_REPLY
        return reply or ""

    def _mark_read_later(self, wire_message_id: str) -> None:
        task = asyncio.create_task(self._mark_read(wire_message_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _mark_read(self, wire_message_id: str) -> None:
        try:
            if not await self._provider.mark_read(wire_message_id):
                logger.warning("Mark-as-read for %s was not accepted", wire_message_id)
        except Exception:
            logger.exception("Mark-as-read for %s failed", wire_message_id)
