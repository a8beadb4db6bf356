from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from whatsapp_gateway.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from whatsapp_gateway.application.repositories.customer import CustomerReader, CustomerWriter
from whatsapp_gateway.application.repositories.lead import LeadRepository
from whatsapp_gateway.application.repositories.message import MessageReader, MessageWriter
from whatsapp_gateway.application.repositories.template import TemplateReader


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    customers: CustomerReader
    customers_w: CustomerWriter
    leads: LeadRepository
    templates: TemplateReader

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


# Opens a fresh unit of work (its own session) per call.
UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
