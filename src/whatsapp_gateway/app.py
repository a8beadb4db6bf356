from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from whatsapp_gateway.api.middleware.correlation_id import CorrelationIdMiddleware
from whatsapp_gateway.api.middleware.metrics import RequestTimingMiddleware
from whatsapp_gateway.api.v1.routers import admin_conversations, health, webhook
from whatsapp_gateway.application.exceptions import (
    ForbiddenError,
    NotConfiguredError,
    NotFoundError,
)
from whatsapp_gateway.config import settings
from whatsapp_gateway.infrastructure.bus.redis_streams import RedisStreamWebhookQueue
from whatsapp_gateway.infrastructure.db.session import AsyncSessionLocal
from whatsapp_gateway.infrastructure.db.uow import sqlalchemy_uow_factory
from whatsapp_gateway.infrastructure.whatsapp.cloud_api import CloudApiClient, WhatsAppConfig
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher

logger = logging.getLogger(__name__)


def whatsapp_config() -> WhatsAppConfig:
    return WhatsAppConfig(
        api_url=settings.WHATSAPP_API_URL,
        api_version=settings.WHATSAPP_API_VERSION,
        phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
        access_token=settings.WHATSAPP_ACCESS_TOKEN,
        timeout=settings.WHATSAPP_HTTP_TIMEOUT,
    )


def build_dispatcher(provider: CloudApiClient) -> DeliveryDispatcher:
    return DeliveryDispatcher(
        provider,
        reengagement_template=settings.REENGAGEMENT_TEMPLATE,
        batch_size=settings.BULK_BATCH_SIZE,
        batch_pause=settings.BULK_BATCH_PAUSE_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    http = httpx.AsyncClient(timeout=settings.WHATSAPP_HTTP_TIMEOUT)
    provider = CloudApiClient(whatsapp_config(), http)
    app.state.dispatcher = build_dispatcher(provider)
    app.state.webhook_queue = RedisStreamWebhookQueue(app.state.redis, settings.WEBHOOK_STREAM)
    app.state.uow_factory = sqlalchemy_uow_factory(AsyncSessionLocal)
    if not settings.whatsapp_configured:
        logger.warning("WhatsApp credentials are not set; webhook and sends are disabled")

    yield

    await http.aclose()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="WhatsApp Gateway",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.whatsapp_configured = settings.whatsapp_configured

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(webhook.router)
    app.include_router(admin_conversations.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(NotConfiguredError)
    async def _not_configured(_req: Request, exc: NotConfiguredError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})
