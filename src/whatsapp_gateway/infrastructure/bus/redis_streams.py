"""Redis Streams transport for verified webhook payloads."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from whatsapp_gateway.infrastructure.bus.serializer import (
    WEBHOOK_EVENT,
    deserialize_event,
    serialize_event,
)

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisStreamWebhookQueue:
    """XADD producer used by the webhook route."""

    def __init__(self, redis: aioredis.Redis, stream: str, *, maxlen: int = 100_000) -> None:
        self._redis = redis
        self._stream = stream
        self._maxlen = maxlen

    async def enqueue(self, payload: dict[str, Any]) -> str:
        entry_id = await self._redis.xadd(
            self._stream,
            {"event_type": WEBHOOK_EVENT, "data": serialize_event(WEBHOOK_EVENT, payload)},
            maxlen=self._maxlen,
            approximate=True,
        )
        logger.debug("Queued webhook payload as %s on %s", entry_id, self._stream)
        return str(entry_id)


class RedisStreamConsumer:
    """XREADGROUP-based consumer for a single stream + consumer group.

    An entry is acknowledged only after the callback returns; entries whose
    callback raised stay pending for inspection or a later XCLAIM.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
        concurrency: int = 10,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._task: asyncio.Task[None] | None = None

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                self._stream, self._group, id="0", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("Consumer group %s already exists", self._group)
            else:
                raise

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name="webhook-stream-consumer")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Stream consumer stopped")

    async def wait(self) -> None:
        if self._task:
            await self._task

    async def handle_entry(self, msg_id: str, fields: dict[str, str]) -> bool:
        """Decode and dispatch one entry; returns whether it was acknowledged."""
        try:
            event_type, payload = deserialize_event(fields["data"])
        except (KeyError, ValueError):
            logger.exception("Dropping undecodable stream entry %s", msg_id)
            await self._redis.xack(self._stream, self._group, msg_id)
            return True
        try:
            await self._callback(event_type, payload)
        except Exception:
            logger.exception("Error processing stream message %s", msg_id)
            return False
        await self._redis.xack(self._stream, self._group, msg_id)
        return True

    async def handle_batch(self, messages: list[tuple[str, dict[str, str]]]) -> list[bool]:
        """Entries of one read run concurrently; per-sender order is kept downstream."""
        return list(
            await asyncio.gather(*(self._handle_bounded(msg_id, fields) for msg_id, fields in messages))
        )

    async def _handle_bounded(self, msg_id: str, fields: dict[str, str]) -> bool:
        async with self._semaphore:
            return await self.handle_entry(msg_id, fields)

    async def _consume(self) -> None:
        while True:
            try:
                entries = await self._redis.xreadgroup(
                    groupname=self._group,
                    consumername=self._consumer,
                    streams={self._stream: ">"},
                    count=self._batch_size,
                    block=self._block_ms,
                )
                if not entries:
                    continue
                for _stream_name, messages in entries:
                    await self.handle_batch(messages)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Stream consumer error, retrying in 5s")
                await asyncio.sleep(5)
