"""Outbound delivery: free-form chunks inside the session window, templates outside it."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, Iterable
from uuid import UUID

from whatsapp_gateway.application.codec.outbound import build_body_components
from whatsapp_gateway.application.dto.delivery import SendOptions, SendResult
from whatsapp_gateway.application.exceptions import NotConfiguredError
from whatsapp_gateway.application.ports.clock import Clock, SystemClock
from whatsapp_gateway.application.ports.provider import MessagingProvider, SendOutcome
from whatsapp_gateway.application.uow import UnitOfWork, UnitOfWorkFactory
from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.domain.formatting.chunker import format_ai_response
from whatsapp_gateway.domain.formatting.display import format_date, format_price
from whatsapp_gateway.domain.value_objects.enums import DeliveryStatus, Direction, MessageType
from whatsapp_gateway.domain.value_objects.phone import normalize_phone_number
from whatsapp_gateway.services import session_service

logger = logging.getLogger(__name__)

QUOTE_READY_TEMPLATE = "quote_ready"
BOOKING_CONFIRMED_TEMPLATE = "booking_confirmed"
PAYMENT_REMINDER_TEMPLATE = "payment_reminder"


def _template_date(value: date | datetime | str) -> str:
    return value if isinstance(value, str) else format_date(value)


class DeliveryDispatcher:
    """Sends to a conversation through a ``MessagingProvider`` and records every wire message.

    Never retries: a rejected or failed provider call becomes a failed
    ``SendResult`` (and a ``failed`` message row) for the caller to act on.
    """

    def __init__(
        self,
        provider: MessagingProvider,
        *,
        clock: Clock | None = None,
        reengagement_template: str = "session_greeting",
        batch_size: int = 10,
        batch_pause: float = 1.0,
    ) -> None:
        self._provider = provider
        self._clock = clock or SystemClock()
        self._reengagement_template = reengagement_template
        self._batch_size = max(1, batch_size)
        self._batch_pause = batch_pause

    async def send(
        self,
        conversation_id: UUID,
        text: str,
        uow: UnitOfWork,
        options: SendOptions | None = None,
    ) -> SendResult:
        options = options or SendOptions()
        conversation = await uow.conversations.get_by_id(conversation_id)
        if conversation is None:
            return SendResult.failure("Conversation not found")

        now = self._clock.now()
        requires_template = options.force_template
        if not requires_template and not options.skip_session_check:
            status = await session_service.session_status_for(conversation, uow, now)
            requires_template = status.requires_template

        if requires_template:
            result = await self._send_template(conversation, options, uow, now)
        else:
            result = await self._send_free_form(conversation, text, uow, now)
        await uow.commit()
        return result

    async def send_to_phone(
        self,
        phone: str,
        text: str,
        uow: UnitOfWork,
        options: SendOptions | None = None,
    ) -> SendResult:
        """Find or create the conversation for ``phone`` and send a template.

        ``skip_session_check`` is the only way to send free-form text here.
        """
        normalized = normalize_phone_number(phone)
        if not normalized:
            return SendResult.failure("Invalid phone number")
        conversation, created = await uow.conversations_w.get_or_create(
            normalized, None, self._clock.now()
        )
        if created:
            logger.info("Created conversation %s for outbound send to %s", conversation.id, normalized)
        options = options or SendOptions()
        if not options.skip_session_check:
            options = dataclasses.replace(options, force_template=True)
        return await self.send(conversation.id, text, uow, options)

    async def send_bulk(
        self,
        conversation_ids: Iterable[UUID],
        text: str,
        uow_factory: UnitOfWorkFactory,
        options: SendOptions | None = None,
    ) -> dict[UUID, SendResult]:
        ids = list(dict.fromkeys(conversation_ids))
        results: dict[UUID, SendResult] = {}
        for start in range(0, len(ids), self._batch_size):
            batch = ids[start:start + self._batch_size]
            outcomes = await asyncio.gather(
                *(self._send_isolated(cid, text, uow_factory, options) for cid in batch)
            )
            results.update(zip(batch, outcomes))
            if start + self._batch_size < len(ids):
                await asyncio.sleep(self._batch_pause)
        sent = sum(1 for r in results.values() if r.success)
        logger.info("Bulk send finished: %d/%d conversations succeeded", sent, len(ids))
        return results

    async def send_quote_ready(
        self,
        phone: str,
        quote_number: str,
        total: float | int | Decimal,
        uow: UnitOfWork,
        *,
        currency: str = "USD",
    ) -> SendResult:
        return await self.send_to_phone(
            phone,
            "",
            uow,
            SendOptions(
                force_template=True,
                template_name=QUOTE_READY_TEMPLATE,
                template_variables=[quote_number, format_price(total, currency)],
            ),
        )

    async def send_booking_confirmed(
        self,
        phone: str,
        booking_reference: str,
        destination: str,
        start_date: date | datetime | str,
        uow: UnitOfWork,
    ) -> SendResult:
        return await self.send_to_phone(
            phone,
            "",
            uow,
            SendOptions(
                force_template=True,
                template_name=BOOKING_CONFIRMED_TEMPLATE,
                template_variables=[booking_reference, destination, _template_date(start_date)],
            ),
        )

    async def send_payment_reminder(
        self,
        phone: str,
        booking_reference: str,
        amount: float | int | Decimal,
        due_date: date | datetime | str,
        uow: UnitOfWork,
        *,
        currency: str = "USD",
    ) -> SendResult:
        return await self.send_to_phone(
            phone,
            "",
            uow,
            SendOptions(
                force_template=True,
                template_name=PAYMENT_REMINDER_TEMPLATE,
                template_variables=[
                    booking_reference,
                    format_price(amount, currency),
                    _template_date(due_date),
                ],
            ),
        )

    async def _send_isolated(
        self,
        conversation_id: UUID,
        text: str,
        uow_factory: UnitOfWorkFactory,
        options: SendOptions | None,
    ) -> SendResult:
        try:
            async with uow_factory() as uow:
                return await self.send(conversation_id, text, uow, options)
        except Exception as exc:
            logger.exception("Bulk send to conversation %s failed", conversation_id)
            return SendResult.failure(str(exc) or type(exc).__name__)

    async def _call_provider(
        self, to: str, send: Callable[[], Awaitable[SendOutcome]],
    ) -> SendOutcome:
        try:
            return await send()
        except NotConfiguredError:
            raise
        except Exception as exc:
            logger.exception("Provider call to %s raised", to)
            return SendOutcome(message_id=None, error_message=str(exc) or type(exc).__name__)

    async def _send_template(
        self,
        conversation: Conversation,
        options: SendOptions,
        uow: UnitOfWork,
        now: datetime,
    ) -> SendResult:
        name = options.template_name or self._reengagement_template
        template = await uow.templates.get_by_name(name)
        if template is None:
            return SendResult.failure(f"Template '{name}' not found", used_template=True)

        variables = list(options.template_variables or [])
        if len(variables) != template.variable_count:
            return SendResult.failure(
                f"Template '{name}' expects {template.variable_count} variables, got {len(variables)}",
                used_template=True,
            )

        outcome = await self._call_provider(
            conversation.phone_number,
            lambda: self._provider.send_template(
                conversation.phone_number,
                name,
                template.language,
                build_body_components(variables),
            ),
        )
        await self._record_outbound(
            conversation,
            outcome,
            uow,
            now,
            type=MessageType.TEMPLATE,
            content=template.render(variables) or name,
            template_name=name,
            template_variables=variables,
        )
        if not outcome.ok:
            return SendResult(
                success=False,
                chunks_count=1,
                used_template=True,
                error=outcome.error_message or "Template send failed",
                failed_chunks=[1],
            )
        return SendResult(
            success=True,
            message_ids=[outcome.message_id],
            chunks_count=1,
            used_template=True,
        )

    async def _send_free_form(
        self,
        conversation: Conversation,
        text: str,
        uow: UnitOfWork,
        now: datetime,
    ) -> SendResult:
        chunks = format_ai_response(text or "")
        if not chunks:
            return SendResult.failure("Nothing to send")

        message_ids: list[str] = []
        failed_chunks: list[int] = []
        first_error: str | None = None
        # Sequential: the recipient must see chunks in order.
        for number, chunk in enumerate(chunks, start=1):
            outcome = await self._call_provider(
                conversation.phone_number,
                lambda: self._provider.send_text(conversation.phone_number, chunk),
            )
            await self._record_outbound(
                conversation, outcome, uow, now, type=MessageType.TEXT, content=chunk
            )
            if outcome.ok:
                message_ids.append(outcome.message_id)
            else:
                failed_chunks.append(number)
                first_error = first_error or outcome.error_message

        error: str | None = None
        if failed_chunks:
            error = (
                first_error or "Send failed"
                if not message_ids
                else f"{len(failed_chunks)} of {len(chunks)} chunks failed"
            )
            logger.warning(
                "Send to conversation %s: chunks %s of %d failed",
                conversation.id,
                failed_chunks,
                len(chunks),
            )
        return SendResult(
            success=bool(message_ids),
            message_ids=message_ids,
            chunks_count=len(chunks),
            error=error,
            failed_chunks=failed_chunks,
        )

    async def _record_outbound(
        self,
        conversation: Conversation,
        outcome: SendOutcome,
        uow: UnitOfWork,
        now: datetime,
        *,
        type: MessageType,
        content: str,
        template_name: str | None = None,
        template_variables: list[str] | None = None,
    ) -> None:
        await uow.messages_w.add(
            Message(
                id=uuid.uuid4(),
                conversation_id=conversation.id,
                direction=Direction.OUTBOUND,
                type=type,
                content=content,
                status=DeliveryStatus.SENT if outcome.ok else DeliveryStatus.FAILED,
                created_at=self._clock.now(),
                wire_message_id=outcome.message_id,
                error_code=None if outcome.ok else outcome.error_code,
                error_message=None if outcome.ok else outcome.error_message,
                template_name=template_name,
                template_variables=template_variables or [],
                sent_at=now if outcome.ok else None,
            )
        )
        if outcome.ok:
            await uow.conversations_w.touch_last_message_at(conversation.id, now)
