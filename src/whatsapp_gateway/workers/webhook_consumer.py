"""Consumer for queued WhatsApp webhook payloads via Redis Streams."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

import httpx
import redis.asyncio as aioredis

from whatsapp_gateway.application.ports.reply import ReplyGenerator
from whatsapp_gateway.config import settings
from whatsapp_gateway.infrastructure.ai.reply_client import HttpReplyGenerator, NullReplyGenerator
from whatsapp_gateway.infrastructure.bus.redis_streams import RedisStreamConsumer
from whatsapp_gateway.infrastructure.bus.serializer import WEBHOOK_EVENT
from whatsapp_gateway.infrastructure.db.session import AsyncSessionLocal
from whatsapp_gateway.infrastructure.db.uow import sqlalchemy_uow_factory
from whatsapp_gateway.infrastructure.whatsapp.cloud_api import CloudApiClient, WhatsAppConfig
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher
from whatsapp_gateway.services.inbound_service import InboundProcessor

logger = logging.getLogger(__name__)


def build_processor(http: httpx.AsyncClient) -> InboundProcessor:
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
    reply_generator: ReplyGenerator
    if settings.REPLY_GENERATOR_URL:
        reply_generator = HttpReplyGenerator(
            settings.REPLY_GENERATOR_URL, http, token=settings.REPLY_GENERATOR_TOKEN,
        )
    else:
        logger.warning("REPLY_GENERATOR_URL is not set; inbound text will not be answered")
        reply_generator = NullReplyGenerator()

    dispatcher = DeliveryDispatcher(
        provider,
        reengagement_template=settings.REENGAGEMENT_TEMPLATE,
        batch_size=settings.BULK_BATCH_SIZE,
        batch_pause=settings.BULK_BATCH_PAUSE_SECONDS,
    )
    return InboundProcessor(
        sqlalchemy_uow_factory(AsyncSessionLocal),
        dispatcher,
        provider,
        reply_generator,
        placeholder_domain=settings.PLACEHOLDER_EMAIL_DOMAIN,
        history_limit=settings.HISTORY_LIMIT,
        reply_timeout=settings.REPLY_TIMEOUT_SECONDS,
    )


def make_handler(processor: InboundProcessor):
    async def _handle_event(event_type: str, payload: dict[str, Any]) -> None:
        if event_type != WEBHOOK_EVENT:
            logger.debug("Ignoring unknown event: %s", event_type)
            return
        result = await processor.process_webhook_payload(payload)
        for error in result.errors:
            logger.warning("Webhook item not processed: %s", error)

    return _handle_event


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"
    # Reply generation can take longer than a provider call.
    http = httpx.AsyncClient(
        timeout=max(settings.WHATSAPP_HTTP_TIMEOUT, settings.REPLY_TIMEOUT_SECONDS)
    )
    processor = build_processor(http)

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.WEBHOOK_STREAM,
        group=settings.WEBHOOK_GROUP,
        consumer=consumer_name,
        callback=make_handler(processor),
        concurrency=settings.WEBHOOK_CONSUMER_CONCURRENCY,
    )
    await consumer.start()
    logger.info("Webhook consumer started (%s)", consumer_name)

    try:
        await consumer.wait()
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await processor.drain()
        await http.aclose()
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
