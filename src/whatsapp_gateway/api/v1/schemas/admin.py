from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from whatsapp_gateway.application.dto.delivery import SendOptions, SendResult
from whatsapp_gateway.application.dto.identity import LinkResult


class LinkCustomerRequest(BaseModel):
    customer_id: int


class LinkResponse(BaseModel):
    success: bool
    linked: bool
    customer_id: int | None
    message: str

    @classmethod
    def from_result(cls, result: LinkResult) -> LinkResponse:
        return cls(
            success=result.success,
            linked=result.linked,
            customer_id=result.customer_id,
            message=result.message,
        )


class _TemplateFields(BaseModel):
    message: str | None = None
    template_name: str | None = None
    template_variables: list[str] | None = None
    force_template: bool = False

    def to_options(self, *, default_force: bool = False) -> SendOptions:
        return SendOptions(
            force_template=self.force_template or default_force or self.template_name is not None,
            template_name=self.template_name,
            template_variables=self.template_variables,
        )


class SendRequest(_TemplateFields):
    conversation_id: UUID | None = None
    phone_number: str | None = None

    @model_validator(mode="after")
    def _check_target(self) -> SendRequest:
        if (self.conversation_id is None) == (self.phone_number is None):
            raise ValueError("Provide exactly one of conversation_id or phone_number")
        if not self.message and not self.template_name:
            raise ValueError("Provide message or template_name")
        return self


class BulkSendRequest(_TemplateFields):
    conversation_ids: list[UUID] = Field(min_length=1, max_length=1000)

    @model_validator(mode="after")
    def _check_content(self) -> BulkSendRequest:
        if not self.message and not self.template_name:
            raise ValueError("Provide message or template_name")
        return self


class SendResponse(BaseModel):
    success: bool
    message_ids: list[str]
    chunks_count: int
    used_template: bool
    error: str | None
    failed_chunks: list[int]

    @classmethod
    def from_result(cls, result: SendResult) -> SendResponse:
        return cls(
            success=result.success,
            message_ids=list(result.message_ids),
            chunks_count=result.chunks_count,
            used_template=result.used_template,
            error=result.error,
            failed_chunks=list(result.failed_chunks),
        )


class BulkSendResponse(BaseModel):
    sent: int
    failed: int
    results: dict[UUID, SendResponse]


class QuoteReadyRequest(BaseModel):
    phone_number: str
    quote_number: str
    total: Decimal
    currency: str = "USD"


class BookingConfirmedRequest(BaseModel):
    phone_number: str
    booking_reference: str
    destination: str
    start_date: date | str


class PaymentReminderRequest(BaseModel):
    phone_number: str
    booking_reference: str
    amount: Decimal
    due_date: date | str
    currency: str = "USD"
