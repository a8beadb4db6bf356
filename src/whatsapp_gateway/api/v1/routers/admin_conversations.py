from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, status

from whatsapp_gateway.api.deps import (
    ClockDep,
    CurrentAdmin,
    DispatcherDep,
    UoWDep,
    UoWFactoryDep,
)
from whatsapp_gateway.api.v1.schemas.admin import (
    BookingConfirmedRequest,
    BulkSendRequest,
    BulkSendResponse,
    LinkCustomerRequest,
    LinkResponse,
    PaymentReminderRequest,
    QuoteReadyRequest,
    SendRequest,
    SendResponse,
)
from whatsapp_gateway.api.v1.schemas.common import PaginatedResponse
from whatsapp_gateway.api.v1.schemas.conversation import ConversationResponse, SessionResponse
from whatsapp_gateway.api.v1.schemas.message import MessageResponse
from whatsapp_gateway.application.dto.conversation import ConversationFilterDTO
from whatsapp_gateway.application.exceptions import NotFoundError
from whatsapp_gateway.domain.value_objects.enums import ConversationFilter
from whatsapp_gateway.services import conversation_service, identity_service

router = APIRouter(prefix="/api/v1/whatsapp/admin", tags=["admin"])


@router.get("/conversations", response_model=PaginatedResponse[ConversationResponse])
async def list_conversations(
    admin: CurrentAdmin,
    uow: UoWDep,
    filter: ConversationFilter = Query(ConversationFilter.ALL),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ConversationResponse]:
    filters = ConversationFilterDTO(filter=filter, limit=limit, offset=(page - 1) * limit)
    items, total = await conversation_service.list_conversations(filters, uow)
    return PaginatedResponse[ConversationResponse](
        items=[ConversationResponse.model_validate(c, from_attributes=True) for c in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    admin: CurrentAdmin,
    uow: UoWDep,
) -> ConversationResponse:
    details = await conversation_service.get_conversation(conversation_id, uow)
    return ConversationResponse.model_validate(details, from_attributes=True)


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    admin: CurrentAdmin,
    uow: UoWDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[MessageResponse]:
    messages = await conversation_service.get_conversation_messages(
        conversation_id, uow, limit=limit, offset=offset,
    )
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.get("/conversations/{conversation_id}/session", response_model=SessionResponse)
async def get_session(
    conversation_id: UUID,
    admin: CurrentAdmin,
    uow: UoWDep,
    clock: ClockDep,
) -> SessionResponse:
    session_status = await conversation_service.get_session(conversation_id, uow, clock.now())
    return SessionResponse.from_status(session_status)


@router.post(
    "/conversations/{conversation_id}/session/end",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def end_session(
    conversation_id: UUID,
    admin: CurrentAdmin,
    uow: UoWDep,
) -> None:
    await conversation_service.end_session(conversation_id, uow)


@router.post("/conversations/{conversation_id}/link", response_model=LinkResponse)
async def link_customer(
    conversation_id: UUID,
    body: LinkCustomerRequest,
    admin: CurrentAdmin,
    uow: UoWDep,
    clock: ClockDep,
) -> LinkResponse:
    result = await identity_service.link(conversation_id, body.customer_id, uow, clock.now())
    if not result.success:
        raise NotFoundError(result.message)
    return LinkResponse.from_result(result)


@router.delete("/conversations/{conversation_id}/link", response_model=LinkResponse)
async def unlink_customer(
    conversation_id: UUID,
    admin: CurrentAdmin,
    uow: UoWDep,
) -> LinkResponse:
    result = await identity_service.unlink(conversation_id, uow)
    if not result.success:
        raise NotFoundError(result.message)
    return LinkResponse.from_result(result)


@router.post("/send", response_model=SendResponse)
async def send(
    body: SendRequest,
    admin: CurrentAdmin,
    uow: UoWDep,
    dispatcher: DispatcherDep,
) -> SendResponse:
    if body.conversation_id is not None:
        result = await dispatcher.send(
            body.conversation_id, body.message or "", uow, body.to_options(),
        )
    else:
        result = await dispatcher.send_to_phone(
            body.phone_number or "", body.message or "", uow, body.to_options(default_force=True),
        )
    return SendResponse.from_result(result)


@router.post("/send/bulk", response_model=BulkSendResponse)
async def send_bulk(
    body: BulkSendRequest,
    admin: CurrentAdmin,
    dispatcher: DispatcherDep,
    uow_factory: UoWFactoryDep,
) -> BulkSendResponse:
    results = await dispatcher.send_bulk(
        body.conversation_ids, body.message or "", uow_factory, body.to_options(),
    )
    sent = sum(1 for r in results.values() if r.success)
    return BulkSendResponse(
        sent=sent,
        failed=len(results) - sent,
        results={cid: SendResponse.from_result(r) for cid, r in results.items()},
    )


@router.post("/notify/quote-ready", response_model=SendResponse)
async def notify_quote_ready(
    body: QuoteReadyRequest,
    admin: CurrentAdmin,
    uow: UoWDep,
    dispatcher: DispatcherDep,
) -> SendResponse:
    result = await dispatcher.send_quote_ready(
        body.phone_number, body.quote_number, body.total, uow, currency=body.currency,
    )
    return SendResponse.from_result(result)


@router.post("/notify/booking-confirmed", response_model=SendResponse)
async def notify_booking_confirmed(
    body: BookingConfirmedRequest,
    admin: CurrentAdmin,
    uow: UoWDep,
    dispatcher: DispatcherDep,
) -> SendResponse:
    result = await dispatcher.send_booking_confirmed(
        body.phone_number, body.booking_reference, body.destination, body.start_date, uow,
    )
    return SendResponse.from_result(result)


@router.post("/notify/payment-reminder", response_model=SendResponse)
async def notify_payment_reminder(
    body: PaymentReminderRequest,
    admin: CurrentAdmin,
    uow: UoWDep,
    dispatcher: DispatcherDep,
) -> SendResponse:
    result = await dispatcher.send_payment_reminder(
        body.phone_number,
        body.booking_reference,
        body.amount,
        body.due_date,
        uow,
        currency=body.currency,
    )
    return SendResponse.from_result(result)
