"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import dataclasses
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from whatsapp_gateway.application.dto.conversation import ConversationFilterDTO
from whatsapp_gateway.application.dto.principal import Principal
from whatsapp_gateway.application.ports.provider import SendOutcome
from whatsapp_gateway.application.ports.reply import ChatTurn
from whatsapp_gateway.domain.entities.conversation import Conversation
from whatsapp_gateway.domain.entities.customer import Customer
from whatsapp_gateway.domain.entities.message import Message
from whatsapp_gateway.domain.entities.template import Template
from whatsapp_gateway.domain.value_objects.enums import (
    STATUS_PREDECESSORS,
    ConversationFilter,
    DeliveryStatus,
    Direction,
    MessageType,
    PrincipalKind,
)

T0 = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


class IntegrityViolation(Exception):
    """Stands in for a unique-constraint error from the database."""


DEFAULT_TEMPLATES = [
    Template(name="session_greeting", language="en", variable_count=0, body_text="Hello again!"),
    Template(name="quote_ready", language="en", variable_count=2, body_text="Quote {{1}} is ready: {{2}}"),
    Template(
        name="booking_confirmed",
        language="en",
        variable_count=3,
        body_text="Booking {{1}} to {{2}} starts {{3}}",
    ),
    Template(
        name="payment_reminder",
        language="en",
        variable_count=3,
        body_text="Payment for {{1}} of {{2}} is due {{3}}",
    ),
]


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(kind=PrincipalKind.ADMIN, subject_id="1", roles=["admin"])


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    phone_number: str = "9771234567",
    display_name: str | None = "Asha",
    customer_id: int | None = None,
    session_window_start: datetime | None = None,
    is_session_active: bool = False,
    last_message_at: datetime | None = None,
) -> Conversation:
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        phone_number=phone_number,
        display_name=display_name,
        customer_id=customer_id,
        message_count=0,
        last_message_at=last_message_at,
        session_window_start=session_window_start,
        is_session_active=is_session_active,
        created_at=T0,
        updated_at=T0,
    )


def make_message(
    *,
    conversation_id: UUID,
    direction: str = Direction.INBOUND,
    content: str | None = "hello",
    status: str = DeliveryStatus.DELIVERED,
    wire_message_id: str | None = None,
    reply_text: str | None = None,
    created_at: datetime = T0,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        direction=direction,
        type=MessageType.TEXT,
        content=content,
        status=status,
        created_at=created_at,
        wire_message_id=wire_message_id,
        reply_text=reply_text,
    )


@dataclass
class FakeClock:
    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@dataclass
class FakeStore:
    """In-memory tables shared by every FakeUoW opened on it."""

    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    messages: list[Message] = field(default_factory=list)
    customers: dict[int, Customer] = field(default_factory=dict)
    lead_scores: dict[int, int] = field(default_factory=dict)
    lead_events: list[dict[str, Any]] = field(default_factory=list)
    templates: dict[str, Template] = field(
        default_factory=lambda: {t.name: t for t in DEFAULT_TEMPLATES}
    )
    fail_lead_events: bool = False

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations[conversation.id] = conversation
        return conversation

    def add_customer(
        self,
        *,
        email: str = "client@example.com",
        name: str | None = "Client",
        phone: str | None = None,
        whatsapp_phone_number: str | None = None,
    ) -> Customer:
        customer = Customer(
            id=len(self.customers) + 1,
            email=email,
            name=name,
            phone=phone,
            whatsapp_phone_number=whatsapp_phone_number,
        )
        self.customers[customer.id] = customer
        return customer

    def messages_for(self, conversation_id: UUID) -> list[Message]:
        return [m for m in self.messages if m.conversation_id == conversation_id]

    def _replace_conversation(self, conversation_id: UUID, **changes: Any) -> None:
        current = self.conversations.get(conversation_id)
        if current is not None:
            self.conversations[conversation_id] = dataclasses.replace(current, **changes)


def _filtered(store: FakeStore, filters: ConversationFilterDTO) -> list[Conversation]:
    rows = list(store.conversations.values())
    if filters.filter == ConversationFilter.UNLINKED:
        rows = [c for c in rows if c.customer_id is None]
    elif filters.filter == ConversationFilter.ACTIVE:
        rows = [c for c in rows if c.is_session_active]
    return sorted(rows, key=lambda c: c.last_message_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)


@dataclass
class FakeConversationReader:
    _store: FakeStore

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    async def get_by_phone(self, phone_number: str) -> Conversation | None:
        for c in self._store.conversations.values():
            if c.phone_number == phone_number:
                return c
        return None

    async def list_expired_active(self, threshold: datetime) -> list[Conversation]:
        return [
            c
            for c in self._store.conversations.values()
            if c.is_session_active
            and (c.session_window_start is None or c.session_window_start < threshold)
        ]

    async def list_for_admin(self, filters: ConversationFilterDTO) -> list[Conversation]:
        rows = _filtered(self._store, filters)
        return rows[filters.offset:filters.offset + filters.limit]

    async def count(self, filters: ConversationFilterDTO) -> int:
        return len(_filtered(self._store, filters))


@dataclass
class FakeConversationWriter:
    _store: FakeStore

    async def get_or_create(
        self, phone_number: str, display_name: str | None, ts: datetime,
    ) -> tuple[Conversation, bool]:
        for c in self._store.conversations.values():
            if c.phone_number == phone_number:
                return c, False
        conversation = make_conversation(phone_number=phone_number, display_name=display_name)
        conversation = dataclasses.replace(conversation, created_at=ts, updated_at=ts)
        return self._store.add_conversation(conversation), True

    async def update_display_name(self, conversation_id: UUID, display_name: str) -> None:
        self._store._replace_conversation(conversation_id, display_name=display_name)

    async def record_inbound(self, conversation_id: UUID, ts: datetime) -> None:
        current = self._store.conversations[conversation_id]
        last = max(filter(None, [current.last_message_at, ts]))
        self._store._replace_conversation(
            conversation_id, message_count=current.message_count + 1, last_message_at=last,
        )

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        current = self._store.conversations[conversation_id]
        self._store._replace_conversation(
            conversation_id, last_message_at=max(filter(None, [current.last_message_at, ts])),
        )

    async def start_session(self, conversation_id: UUID, ts: datetime) -> None:
        current = self._store.conversations[conversation_id]
        start = max(filter(None, [current.session_window_start, ts]))
        self._store._replace_conversation(
            conversation_id, session_window_start=start, is_session_active=True,
        )

    async def end_session(self, conversation_id: UUID) -> None:
        self._store._replace_conversation(conversation_id, is_session_active=False)

    async def set_customer(self, conversation_id: UUID, customer_id: int | None) -> None:
        self._store._replace_conversation(conversation_id, customer_id=customer_id)


@dataclass
class FakeMessageReader:
    _store: FakeStore

    async def list_messages(
        self, conversation_id: UUID, *, limit: int = 50, offset: int = 0,
    ) -> list[Message]:
        rows = list(reversed(self._store.messages_for(conversation_id)))
        return rows[offset:offset + limit]

    async def recent(
        self, conversation_id: UUID, *, limit: int, exclude_id: UUID | None = None,
    ) -> list[Message]:
        rows = [m for m in self._store.messages_for(conversation_id) if m.id != exclude_id]
        return rows[-limit:] if limit else []


@dataclass
class FakeMessageWriter:
    _store: FakeStore

    async def add(self, message: Message) -> Message:
        self._store.messages.append(message)
        return message

    async def update_status(
        self,
        wire_message_id: str,
        status: str,
        ts: datetime,
        *,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        target = DeliveryStatus(status)
        for index, message in enumerate(self._store.messages):
            if message.wire_message_id != wire_message_id:
                continue
            if message.status not in STATUS_PREDECESSORS[target]:
                return False
            changes: dict[str, Any] = {"status": target}
            if target == DeliveryStatus.SENT:
                changes["sent_at"] = ts
            elif target == DeliveryStatus.DELIVERED:
                changes["delivered_at"] = ts
            elif target == DeliveryStatus.READ:
                changes["read_at"] = ts
            else:
                changes["error_code"] = error_code
                changes["error_message"] = error_message
            self._store.messages[index] = dataclasses.replace(message, **changes)
            return True
        return False

    async def set_reply(self, message_id: UUID, reply_text: str) -> None:
        for index, message in enumerate(self._store.messages):
            if message.id == message_id:
                self._store.messages[index] = dataclasses.replace(message, reply_text=reply_text)


@dataclass
class FakeCustomerReader:
    _store: FakeStore

    async def get_by_id(self, customer_id: int) -> Customer | None:
        return self._store.customers.get(customer_id)

    async def find_by_whatsapp_phone(self, phone: str) -> Customer | None:
        for c in self._store.customers.values():
            if c.whatsapp_phone_number == phone:
                return c
        return None

    async def find_by_phone_suffix(self, suffix: str) -> Customer | None:
        for c in self._store.customers.values():
            if c.phone and suffix in c.phone:
                return c
        return None


@dataclass
class FakeCustomerWriter:
    _store: FakeStore

    async def create_if_not_exists(
        self,
        *,
        email: str,
        name: str | None,
        phone: str,
        whatsapp_phone_number: str,
        source: str,
    ) -> tuple[Customer, bool]:
        for c in self._store.customers.values():
            if c.whatsapp_phone_number == whatsapp_phone_number:
                return c, False
        customer = Customer(
            id=len(self._store.customers) + 1,
            email=email,
            name=name,
            phone=phone,
            whatsapp_phone_number=whatsapp_phone_number,
            source=source,
        )
        self._store.customers[customer.id] = customer
        return customer, True

    async def set_whatsapp_phone_if_empty(self, customer_id: int, phone: str) -> None:
        current = self._store.customers[customer_id]
        for other in self._store.customers.values():
            if other.id != customer_id and other.whatsapp_phone_number == phone:
                raise IntegrityViolation("customers_whatsapp_phone_number_key")
        if not current.whatsapp_phone_number:
            self._store.customers[customer_id] = dataclasses.replace(
                current, whatsapp_phone_number=phone
            )


@dataclass
class FakeLeadRepo:
    _store: FakeStore

    async def init_score(
        self, customer_id: int, *, score: int, status: str, source: str, ts: datetime,
    ) -> None:
        self._store.lead_scores.setdefault(customer_id, score)

    async def get_score(self, customer_id: int) -> int | None:
        return self._store.lead_scores.get(customer_id)

    async def update_score(self, customer_id: int, score: int, ts: datetime) -> None:
        self._store.lead_scores[customer_id] = score

    async def record_event(self, customer_id: int, **event: Any) -> None:
        if self._store.fail_lead_events:
            raise RuntimeError("lead_events unavailable")
        self._store.lead_events.append({"customer_id": customer_id, **event})


@dataclass
class FakeTemplateReader:
    _store: FakeStore

    async def get_by_name(self, name: str) -> Template | None:
        return self._store.templates.get(name)


class FakeUoW:
    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        self.conversations = FakeConversationReader(self.store)
        self.conversations_w = FakeConversationWriter(self.store)
        self.messages = FakeMessageReader(self.store)
        self.messages_w = FakeMessageWriter(self.store)
        self.customers = FakeCustomerReader(self.store)
        self.customers_w = FakeCustomerWriter(self.store)
        self.leads = FakeLeadRepo(self.store)
        self.templates = FakeTemplateReader(self.store)
        self._committed = False
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def flush(self) -> None:
        pass


def fake_uow_factory(store: FakeStore):
    @asynccontextmanager
    async def _scope() -> AsyncIterator[FakeUoW]:
        yield FakeUoW(store)

    return _scope


@dataclass
class FakeProvider:
    texts: list[tuple[str, str]] = field(default_factory=list)
    templates: list[tuple[str, str, str, list[dict[str, Any]] | None]] = field(default_factory=list)
    read: list[str] = field(default_factory=list)
    fail_text_calls: set[int] = field(default_factory=set)
    fail_templates: bool = False
    mark_read_error: Exception | None = None

    async def send_text(self, to: str, body: str) -> SendOutcome:
        self.texts.append((to, body))
        call = len(self.texts)
        if call in self.fail_text_calls:
            return SendOutcome(
                message_id=None,
                status_code=400,
                error_code="131026",
                error_message="Message undeliverable",
            )
        return SendOutcome(message_id=f"wamid.text{call}", status_code=200)

    async def send_template(
        self,
        to: str,
        template_name: str,
        language: str,
        components: list[dict[str, Any]] | None = None,
    ) -> SendOutcome:
        self.templates.append((to, template_name, language, components))
        if self.fail_templates:
            return SendOutcome(message_id=None, status_code=400, error_message="Template rejected")
        return SendOutcome(message_id=f"wamid.tpl{len(self.templates)}", status_code=200)

    async def mark_read(self, message_id: str) -> bool:
        if self.mark_read_error is not None:
            raise self.mark_read_error
        self.read.append(message_id)
        return True


@dataclass
class FakeReplyGenerator:
    reply: str = "Namaste! How can I help with your trip?"
    error: Exception | None = None
    delay: float = 0.0
    calls: list[tuple[str, int | None, list[ChatTurn]]] = field(default_factory=list)

    async def generate(self, text: str, customer_id: int | None, history: list[ChatTurn]) -> str:
        self.calls.append((text, customer_id, list(history)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


@dataclass
class FakeWebhookQueue:
    payloads: list[dict[str, Any]] = field(default_factory=list)

    async def enqueue(self, payload: dict[str, Any]) -> str:
        self.payloads.append(payload)
        return f"{len(self.payloads)}-0"
