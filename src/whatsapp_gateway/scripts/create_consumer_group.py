"""One-time script: create the Redis Streams consumer group for webhook payloads."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from whatsapp_gateway.config import settings

logger = logging.getLogger(__name__)


async def create_group() -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await r.xgroup_create(
            settings.WEBHOOK_STREAM,
            settings.WEBHOOK_GROUP,
            id="0",
            mkstream=True,
        )
        logger.info(
            "Created consumer group '%s' on stream '%s'",
            settings.WEBHOOK_GROUP,
            settings.WEBHOOK_STREAM,
        )
    except aioredis.ResponseError as e:
        if "BUSYGROUP" in str(e):
            logger.info("Consumer group '%s' already exists", settings.WEBHOOK_GROUP)
        else:
            raise
    finally:
        await r.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_group())


if __name__ == "__main__":
    main()
