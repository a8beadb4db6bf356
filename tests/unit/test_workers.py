from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from whatsapp_gateway.infrastructure.bus.redis_streams import (
    RedisStreamConsumer,
    RedisStreamWebhookQueue,
)
from whatsapp_gateway.infrastructure.bus.serializer import WEBHOOK_EVENT, serialize_event
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher
from whatsapp_gateway.workers.session_sweeper import sweep_once
from tests.conftest import T0, FakeClock, FakeProvider, FakeStore, fake_uow_factory, make_conversation


class FakeRedis:
    def __init__(self) -> None:
        self.added: list[tuple[str, dict]] = []
        self.acked: list[str] = []

    async def xadd(self, stream, fields, maxlen=None, approximate=True):
        self.added.append((stream, fields))
        return f"{len(self.added)}-0"

    async def xack(self, stream, group, msg_id):
        self.acked.append(msg_id)
        return 1


def _consumer(redis: FakeRedis, callback) -> RedisStreamConsumer:
    return RedisStreamConsumer(redis, "whatsapp.webhooks", "gw", "c-1", callback)


@pytest.mark.asyncio
async def test_queue_enqueues_serialized_payload():
    redis = FakeRedis()
    queue = RedisStreamWebhookQueue(redis, "whatsapp.webhooks")

    entry_id = await queue.enqueue({"object": "whatsapp_business_account"})

    assert entry_id == "1-0"
    [(stream, fields)] = redis.added
    assert stream == "whatsapp.webhooks"
    assert fields["event_type"] == WEBHOOK_EVENT


@pytest.mark.asyncio
async def test_handle_entry_acks_after_callback():
    redis = FakeRedis()
    received = []

    async def callback(event_type, payload):
        received.append((event_type, payload))

    fields = {"data": serialize_event(WEBHOOK_EVENT, {"entry": []})}
    acked = await _consumer(redis, callback).handle_entry("5-0", fields)

    assert acked is True
    assert received == [(WEBHOOK_EVENT, {"entry": []})]
    assert redis.acked == ["5-0"]


@pytest.mark.asyncio
async def test_handle_entry_leaves_failed_entry_pending():
    redis = FakeRedis()

    async def callback(event_type, payload):
        raise RuntimeError("db down")

    fields = {"data": serialize_event(WEBHOOK_EVENT, {})}
    acked = await _consumer(redis, callback).handle_entry("6-0", fields)

    assert acked is False
    assert redis.acked == []


@pytest.mark.asyncio
async def test_handle_entry_drops_undecodable_entry():
    redis = FakeRedis()

    async def callback(event_type, payload):
        raise AssertionError("must not be called")

    acked = await _consumer(redis, callback).handle_entry("7-0", {"data": "not json"})

    assert acked is True
    assert redis.acked == ["7-0"]


@pytest.mark.asyncio
async def test_handle_batch_runs_entries_concurrently():
    redis = FakeRedis()
    both_started = asyncio.Event()
    started: list[str] = []

    async def callback(event_type, payload):
        started.append(payload["sender"])
        if len(started) == 2:
            both_started.set()
        await asyncio.wait_for(both_started.wait(), timeout=1)

    messages = [
        ("8-0", {"data": serialize_event(WEBHOOK_EVENT, {"sender": "alice"})}),
        ("9-0", {"data": serialize_event(WEBHOOK_EVENT, {"sender": "bob"})}),
    ]
    acked = await _consumer(redis, callback).handle_batch(messages)

    assert acked == [True, True]
    assert started == ["alice", "bob"]
    assert sorted(redis.acked) == ["8-0", "9-0"]


@pytest.mark.asyncio
async def test_handle_batch_respects_concurrency_limit():
    redis = FakeRedis()
    running = 0
    peak = 0

    async def callback(event_type, payload):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    consumer = RedisStreamConsumer(redis, "whatsapp.webhooks", "gw", "c-1", callback, concurrency=2)
    messages = [(f"{i}-0", {"data": serialize_event(WEBHOOK_EVENT, {})}) for i in range(5)]

    await consumer.handle_batch(messages)

    assert peak == 2
    assert len(redis.acked) == 5


@pytest.mark.asyncio
async def test_sweep_once_closes_expired_sessions():
    store = FakeStore()
    expired = store.add_conversation(
        make_conversation(phone_number="1111111", session_window_start=T0, is_session_active=True)
    )
    fresh = store.add_conversation(
        make_conversation(
            phone_number="2222222",
            session_window_start=T0 + timedelta(hours=20),
            is_session_active=True,
        )
    )
    clock = FakeClock(T0 + timedelta(hours=25))

    closed = await sweep_once(fake_uow_factory(store), clock)

    assert closed == 1
    assert store.conversations[expired.id].is_session_active is False
    assert store.conversations[fresh.id].is_session_active is True


@pytest.mark.asyncio
async def test_sweep_once_sends_reengagement_template():
    store = FakeStore()
    conv = store.add_conversation(
        make_conversation(session_window_start=T0, is_session_active=True)
    )
    provider = FakeProvider()
    clock = FakeClock(T0 + timedelta(days=2))

    await sweep_once(fake_uow_factory(store), clock, DeliveryDispatcher(provider, clock=clock))

    [(to, name, _, _)] = provider.templates
    assert (to, name) == (conv.phone_number, "session_greeting")
