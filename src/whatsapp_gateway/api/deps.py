"""FastAPI dependency injection helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from whatsapp_gateway.application.dto.principal import Principal
from whatsapp_gateway.application.policies.permissions import assert_admin
from whatsapp_gateway.application.ports.auth import TokenVerifier
from whatsapp_gateway.application.ports.clock import Clock, SystemClock
from whatsapp_gateway.application.ports.queue import WebhookQueue
from whatsapp_gateway.application.uow import UnitOfWorkFactory
from whatsapp_gateway.config import settings
from whatsapp_gateway.infrastructure.auth.hs256_verifier import HS256Verifier
from whatsapp_gateway.infrastructure.db.session import AsyncSessionLocal
from whatsapp_gateway.infrastructure.db.uow import SqlAlchemyUoW
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    return request.app.state.uow_factory


UoWFactoryDep = Annotated[UnitOfWorkFactory, Depends(get_uow_factory)]


def get_dispatcher(request: Request) -> DeliveryDispatcher:
    return request.app.state.dispatcher


DispatcherDep = Annotated[DeliveryDispatcher, Depends(get_dispatcher)]


def get_webhook_queue(request: Request) -> WebhookQueue:
    return request.app.state.webhook_queue


WebhookQueueDep = Annotated[WebhookQueue, Depends(get_webhook_queue)]


def get_clock() -> Clock:
    return SystemClock()


ClockDep = Annotated[Clock, Depends(get_clock)]


@dataclass(frozen=True, slots=True)
class WebhookConfig:
    configured: bool
    verify_token: str
    app_secret: str


def get_webhook_config() -> WebhookConfig:
    return WebhookConfig(
        configured=settings.whatsapp_configured,
        verify_token=settings.WHATSAPP_WEBHOOK_VERIFY_TOKEN,
        app_secret=settings.WHATSAPP_APP_SECRET,
    )


WebhookConfigDep = Annotated[WebhookConfig, Depends(get_webhook_config)]


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    assert_admin(principal)
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]
