"""Session sweeper: closes lapsed 24h windows, optionally nudging with a template."""
from __future__ import annotations

import asyncio
import logging

import httpx

from whatsapp_gateway.application.dto.delivery import SendOptions
from whatsapp_gateway.application.ports.clock import Clock, SystemClock
from whatsapp_gateway.application.uow import UnitOfWorkFactory
from whatsapp_gateway.config import settings
from whatsapp_gateway.infrastructure.db.session import AsyncSessionLocal
from whatsapp_gateway.infrastructure.db.uow import sqlalchemy_uow_factory
from whatsapp_gateway.infrastructure.whatsapp.cloud_api import CloudApiClient, WhatsAppConfig
from whatsapp_gateway.services import session_service
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher

logger = logging.getLogger(__name__)


async def sweep_once(
    uow_factory: UnitOfWorkFactory,
    clock: Clock,
    dispatcher: DeliveryDispatcher | None = None,
) -> int:
    """End every expired session; returns how many were closed."""
    async with uow_factory() as uow:
        expired = await session_service.expired_sessions(uow, clock.now())
        for conversation in expired:
            await session_service.end_session(conversation.id, uow)
        await uow.commit()

    if expired:
        logger.info("Closed %d expired session windows", len(expired))

    if dispatcher is not None:
        for conversation in expired:
            async with uow_factory() as uow:
                result = await dispatcher.send(
                    conversation.id, "", uow, SendOptions(force_template=True)
                )
            if not result.success:
                logger.warning(
                    "Re-engagement for conversation %s failed: %s",
                    conversation.id,
                    result.error,
                )
    return len(expired)


async def run_sweeper() -> None:
    uow_factory = sqlalchemy_uow_factory(AsyncSessionLocal)
    clock = SystemClock()
    http: httpx.AsyncClient | None = None
    dispatcher: DeliveryDispatcher | None = None
    if settings.SESSION_SWEEP_SEND_REENGAGEMENT:
        http = httpx.AsyncClient(timeout=settings.WHATSAPP_HTTP_TIMEOUT)
        provider = CloudApiClient(
            WhatsAppConfig(
                api_url=settings.WHATSAPP_API_URL,
                api_version=settings.WHATSAPP_API_VERSION,
                phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
                access_token=settings.WHATSAPP_ACCESS_TOKEN,
                timeout=settings.WHATSAPP_HTTP_TIMEOUT,
            ),
            http,
        )
        dispatcher = DeliveryDispatcher(provider, reengagement_template=settings.REENGAGEMENT_TEMPLATE)

    logger.info(
        "Session sweeper started (interval=%.0fs, reengagement=%s)",
        settings.SESSION_SWEEP_INTERVAL,
        settings.SESSION_SWEEP_SEND_REENGAGEMENT,
    )
    try:
        while True:
            try:
                await sweep_once(uow_factory, clock, dispatcher)
            except Exception:
                logger.exception("Session sweeper loop error")
            await asyncio.sleep(settings.SESSION_SWEEP_INTERVAL)
    finally:
        if http is not None:
            await http.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_sweeper())


if __name__ == "__main__":
    main()
