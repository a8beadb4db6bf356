"""Phone number to CRM customer resolution and linkage."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from whatsapp_gateway.application.dto.conversation import ConversationFilterDTO
from whatsapp_gateway.application.dto.identity import LinkResult
from whatsapp_gateway.application.uow import UnitOfWork
from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.domain.entities.customer import Customer
from whatsapp_gateway.domain.value_objects.enums import ConversationFilter
from whatsapp_gateway.domain.value_objects.phone import (
    format_phone_for_display,
    normalize_phone_number,
)

logger = logging.getLogger(__name__)

WHATSAPP_SOURCE = "whatsapp"
INITIAL_LEAD_SCORE = 10
INITIAL_LEAD_STATUS = "new"
LINKED_EVENT = "whatsapp_linked"
LEAD_EVENT_SCORES: dict[str, int] = {LINKED_EVENT: 5}
DEFAULT_LEAD_EVENT_SCORE = 2

FUZZY_SUFFIX_DIGITS = 10
FUZZY_MIN_DIGITS = 7


async def find_by_phone(phone: str, uow: UnitOfWork) -> Customer | None:
    """Exact normalized match, then exact raw match, then last-10-digit match."""
    normalized = normalize_phone_number(phone)
    if normalized:
        customer = await uow.customers.find_by_whatsapp_phone(normalized)
        if customer is not None:
            return customer
    if phone and phone != normalized:
        customer = await uow.customers.find_by_whatsapp_phone(phone)
        if customer is not None:
            return customer
    if len(normalized) < FUZZY_MIN_DIGITS:
        return None
    return await uow.customers.find_by_phone_suffix(normalized[-FUZZY_SUFFIX_DIGITS:])


async def record_lead_event(
    customer_id: int,
    event_type: str,
    uow: UnitOfWork,
    now: datetime,
    data: dict[str, Any] | None = None,
) -> None:
    """Best effort: failures are logged and rolled back, never raised."""
    change = LEAD_EVENT_SCORES.get(event_type, DEFAULT_LEAD_EVENT_SCORE)
    try:
        before = await uow.leads.get_score(customer_id)
        after = before + change if before is not None else None
        await uow.leads.record_event(
            customer_id,
            event_type=event_type,
            event_data=data or {},
            score_change=change,
            score_before=before,
            score_after=after,
            source=WHATSAPP_SOURCE,
        )
        if after is not None:
            await uow.leads.update_score(customer_id, after, now)
        await uow.commit()
    except Exception:
        logger.exception("Failed to record lead event %s for customer %s", event_type, customer_id)
        await uow.rollback()


async def link(
    conversation_id: UUID,
    customer_id: int,
    uow: UnitOfWork,
    now: datetime,
) -> LinkResult:
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        return LinkResult.failure("Conversation not found")
    customer = await uow.customers.get_by_id(customer_id)
    if customer is None:
        return LinkResult.failure("Customer not found")

    await uow.conversations_w.set_customer(conversation_id, customer_id)
    whatsapp_phone = customer.whatsapp_phone_number
    if not whatsapp_phone:
        # whatsapp_phone_number is unique across customers.
        owner = await uow.customers.find_by_whatsapp_phone(conversation.phone_number)
        if owner is None:
            await uow.customers_w.set_whatsapp_phone_if_empty(customer_id, conversation.phone_number)
            whatsapp_phone = conversation.phone_number
        else:
            logger.info(
                "WhatsApp number %s already belongs to customer %s; not copied to customer %s",
                conversation.phone_number,
                owner.id,
                customer_id,
            )
    await uow.commit()
    logger.info("Linked conversation %s to customer %s", conversation_id, customer_id)

    await record_lead_event(
        customer_id,
        LINKED_EVENT,
        uow,
        now,
        {"conversation_id": str(conversation_id), "phone_number": conversation.phone_number},
    )

    return LinkResult(
        success=True,
        linked=True,
        customer_id=customer.id,
        customer=Customer(
            id=customer.id,
            email=customer.email,
            name=customer.name,
            phone=customer.phone,
            whatsapp_phone_number=whatsapp_phone,
            source=customer.source,
        ),
        message="Successfully linked conversation to customer",
    )


async def auto_link(
    conversation_id: UUID, phone: str, uow: UnitOfWork, now: datetime,
) -> LinkResult:
    customer = await find_by_phone(phone, uow)
    if customer is None:
        return LinkResult(
            success=True,
            linked=False,
            customer_id=None,
            customer=None,
            message="No matching customer found",
        )
    return await link(conversation_id, customer.id, uow, now)


async def create_from_contact(
    phone: str,
    display_name: str | None,
    uow: UnitOfWork,
    now: datetime,
    *,
    email: str | None = None,
    placeholder_domain: str,
) -> LinkResult:
    """Create a CRM customer for an unknown WhatsApp contact.

    Keyed on the unique WhatsApp number, so concurrent first messages from the
    same phone end up with a single customer. The lead score is seeded only
    by the call that actually inserted the row.
    """
    normalized = normalize_phone_number(phone)
    if not normalized:
        return LinkResult.failure("Invalid phone number")

    try:
        customer, created = await uow.customers_w.create_if_not_exists(
            email=email or f"whatsapp+{normalized}@{placeholder_domain}",
            name=display_name or None,
            phone=format_phone_for_display(normalized),
            whatsapp_phone_number=normalized,
            source=WHATSAPP_SOURCE,
        )
        if created:
            await uow.leads.init_score(
                customer.id,
                score=INITIAL_LEAD_SCORE,
                status=INITIAL_LEAD_STATUS,
                source=WHATSAPP_SOURCE,
                ts=now,
            )
        await uow.commit()
    except Exception as exc:
        logger.exception("Failed to create customer for %s", normalized)
        await uow.rollback()
        return LinkResult.failure(str(exc) or "Failed to create customer")

    if created:
        logger.info("Created customer %s from WhatsApp contact %s", customer.id, normalized)
    return LinkResult(
        success=True,
        linked=True,
        customer_id=customer.id,
        customer=customer,
        message="Created new customer from WhatsApp" if created else "Customer already exists",
        created=created,
    )


async def unlink(conversation_id: UUID, uow: UnitOfWork) -> LinkResult:
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        return LinkResult.failure("Conversation not found")
    await uow.conversations_w.set_customer(conversation_id, None)
    await uow.commit()
    logger.info("Unlinked conversation %s", conversation_id)
    return LinkResult(
        success=True,
        linked=False,
        customer_id=None,
        customer=None,
        message="Conversation unlinked",
    )


async def list_unlinked_conversations(
    uow: UnitOfWork, *, limit: int = 20, offset: int = 0,
) -> list[Conversation]:
    return await uow.conversations.list_for_admin(
        ConversationFilterDTO(filter=ConversationFilter.UNLINKED, limit=limit, offset=offset)
    )
