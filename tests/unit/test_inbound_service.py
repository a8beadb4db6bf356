from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from whatsapp_gateway.application.ports.reply import ChatTurn
from whatsapp_gateway.domain.formatting.chunker import format_ai_response
from whatsapp_gateway.domain.value_objects.enums import DeliveryStatus, Direction
from whatsapp_gateway.services.delivery_service import DeliveryDispatcher
from whatsapp_gateway.services.inbound_service import FALLBACK_REPLY, InboundProcessor
from tests.conftest import (
    T0,
    FakeClock,
    FakeProvider,
    FakeReplyGenerator,
    FakeStore,
    FakeUoW,
    fake_uow_factory,
    make_conversation,
    make_message,
)

PLACEHOLDER_DOMAIN = "placeholder.curatedascents.com"


def _payload(messages=None, statuses=None, contacts=None) -> dict:
    value: dict = {"messaging_product": "whatsapp"}
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    if contacts is not None:
        value["contacts"] = contacts
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "1", "changes": [{"field": "messages", "value": value}]}],
    }


def _text(sender: str, wire_id: str, body: str, ts: int = 1775034000) -> dict:
    return {"from": sender, "id": wire_id, "timestamp": str(ts), "type": "text", "text": {"body": body}}


class Harness:
    def __init__(self, **generator_kwargs) -> None:
        self.store = FakeStore()
        self.clock = FakeClock()
        self.provider = FakeProvider()
        self.generator = FakeReplyGenerator(**generator_kwargs)
        self.processor = InboundProcessor(
            fake_uow_factory(self.store),
            DeliveryDispatcher(self.provider, clock=self.clock),
            self.provider,
            self.generator,
            placeholder_domain=PLACEHOLDER_DOMAIN,
            clock=self.clock,
            reply_timeout=0.05,
        )

    async def process(self, payload: dict):
        result = await self.processor.process_webhook_payload(payload)
        await self.processor.drain()
        return result


@pytest.mark.asyncio
async def test_first_text_from_new_number_creates_everything():
    h = Harness()
    payload = _payload(
        messages=[_text("+9771234567", "wamid.in1", "Hello")],
        contacts=[{"wa_id": "9771234567", "profile": {"name": "Asha"}}],
    )

    result = await h.process(payload)

    assert result.success is True
    [processed] = result.messages
    assert processed.is_new_conversation is True
    assert processed.reply == h.generator.reply

    [conv] = h.store.conversations.values()
    assert conv.phone_number == "9771234567"
    assert conv.display_name == "Asha"
    assert conv.is_session_active is True
    assert conv.session_window_start == T0
    assert conv.message_count == 1

    [customer] = h.store.customers.values()
    assert customer.email == "whatsapp+9771234567@placeholder.curatedascents.com"
    assert conv.customer_id == customer.id == processed.customer_id
    assert h.store.lead_scores[customer.id] == 15

    inbound = [m for m in h.store.messages if m.direction == Direction.INBOUND]
    outbound = [m for m in h.store.messages if m.direction == Direction.OUTBOUND]
    assert len(inbound) == 1
    assert inbound[0].content == "Hello"
    assert inbound[0].reply_text == h.generator.reply
    assert len(outbound) == 1
    assert outbound[0].status == DeliveryStatus.SENT
    assert h.provider.texts == [("9771234567", h.generator.reply)]
    assert h.provider.read == ["wamid.in1"]


@pytest.mark.asyncio
async def test_existing_customer_is_auto_linked():
    h = Harness()
    customer = h.store.add_customer(phone="+977 9812345678")

    result = await h.process(_payload(messages=[_text("9779812345678", "wamid.1", "Namaste")]))

    assert result.messages[0].customer_id == customer.id
    assert len(h.store.customers) == 1


@pytest.mark.asyncio
async def test_failed_status_updates_sent_message():
    h = Harness()
    conv = h.store.add_conversation(make_conversation())
    h.store.messages.append(
        make_message(
            conversation_id=conv.id,
            direction=Direction.OUTBOUND,
            status=DeliveryStatus.SENT,
            wire_message_id="wamid.out1",
        )
    )
    payload = _payload(
        statuses=[
            {"id": "wamid.out1", "status": "failed", "timestamp": "1775034100",
             "errors": [{"code": 131047, "title": "Re-engagement message"}]},
            {"id": "wamid.ghost", "status": "delivered", "timestamp": "1775034100"},
        ]
    )

    result = await h.process(payload)

    assert result.success is True
    assert result.statuses_applied == 1
    [message] = h.store.messages
    assert message.status == DeliveryStatus.FAILED
    assert message.error_code == "131047"
    assert message.error_message == "Re-engagement message"


@pytest.mark.asyncio
async def test_late_delivered_status_does_not_undo_read():
    h = Harness()
    conv = h.store.add_conversation(make_conversation())
    h.store.messages.append(
        make_message(
            conversation_id=conv.id,
            direction=Direction.OUTBOUND,
            status=DeliveryStatus.READ,
            wire_message_id="wamid.out1",
        )
    )

    result = await h.process(
        _payload(statuses=[{"id": "wamid.out1", "status": "delivered", "timestamp": "1"}])
    )

    assert result.statuses_applied == 0
    assert h.store.messages[0].status == DeliveryStatus.READ


@pytest.mark.asyncio
async def test_one_bad_message_does_not_block_others(monkeypatch):
    h = Harness()
    original = h.processor.process_message

    async def flaky(message):
        if message.wire_message_id == "wamid.bad":
            raise RuntimeError("database hiccup")
        return await original(message)

    monkeypatch.setattr(h.processor, "process_message", flaky)

    result = await h.process(
        _payload(
            messages=[
                _text("111111111", "wamid.bad", "first"),
                _text("111111111", "wamid.ok", "second"),
                _text("222222222", "wamid.other", "hi"),
            ]
        )
    )

    assert sorted(m.text for m in result.messages) == ["hi", "second"]
    assert result.errors == ["Message wamid.bad: database hiccup"]


@pytest.mark.asyncio
async def test_generator_timeout_sends_fallback():
    h = Harness(delay=1.0)

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))

    assert result.messages[0].reply == FALLBACK_REPLY
    assert h.provider.texts[-1][1] == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_generator_error_sends_fallback():
    h = Harness(error=RuntimeError("model down"))

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))

    assert result.messages[0].reply == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_empty_generator_reply_sends_nothing():
    h = Harness(reply="")

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))

    assert result.messages[0].reply is None
    assert h.provider.texts == []


@pytest.mark.asyncio
async def test_image_is_acknowledged_but_sticker_is_not():
    h = Harness()
    payload = _payload(
        messages=[
            {"from": "9771234567", "id": "m1", "timestamp": "1", "type": "image",
             "image": {"id": "media-1", "caption": "my passport"}},
            {"from": "9771234567", "id": "m2", "timestamp": "2", "type": "sticker",
             "sticker": {"id": "media-2"}},
        ]
    )

    result = await h.process(payload)

    image, sticker = result.messages
    assert image.text == "my passport"
    assert image.reply == h.generator.reply
    assert "image" in h.generator.calls[0][0]
    assert sticker.reply is None
    assert len(h.provider.texts) == 1


@pytest.mark.asyncio
async def test_failed_reply_delivery_is_not_recorded():
    h = Harness()
    h.provider.fail_text_calls = {1}

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))

    assert result.messages[0].reply is None
    inbound = [m for m in h.store.messages if m.direction == Direction.INBOUND]
    assert inbound[0].reply_text is None


@pytest.mark.asyncio
async def test_mark_read_failure_is_ignored():
    h = Harness()
    h.provider.mark_read_error = RuntimeError("network down")

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))

    assert result.success is True
    assert result.messages[0].reply == h.generator.reply


@pytest.mark.asyncio
async def test_second_message_gets_history_and_keeps_customer():
    h = Harness()
    await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))
    h.clock.advance(timedelta(minutes=5))

    result = await h.process(_payload(messages=[_text("9771234567", "wamid.2", "Any treks in May?")]))

    assert result.messages[0].is_new_conversation is False
    assert len(h.store.customers) == 1
    text, customer_id, history = h.generator.calls[-1]
    assert text == "Any treks in May?"
    assert customer_id == result.messages[0].customer_id
    assert history == [
        ChatTurn(role="user", content="Hi"),
        ChatTurn(role="assistant", content=h.generator.reply),
    ]


@pytest.mark.asyncio
async def test_load_history_skips_reply_chunks_but_keeps_other_outbound():
    h = Harness()
    uow = FakeUoW(h.store)
    conv = h.store.add_conversation(make_conversation())
    long_reply = "Word " * 1200
    chunks = format_ai_response(long_reply)
    assert len(chunks) == 2
    h.store.messages.append(
        make_message(conversation_id=conv.id, content="Tell me everything", reply_text=long_reply)
    )
    for chunk in chunks:
        h.store.messages.append(
            make_message(conversation_id=conv.id, direction=Direction.OUTBOUND, content=chunk)
        )
    h.store.messages.append(
        make_message(conversation_id=conv.id, direction=Direction.OUTBOUND, content="Your quote is ready")
    )

    history = await h.processor.load_history(conv.id, uow)

    assert history == [
        ChatTurn(role="user", content="Tell me everything"),
        ChatTurn(role="assistant", content=long_reply),
        ChatTurn(role="assistant", content="Your quote is ready"),
    ]


@pytest.mark.asyncio
async def test_same_sender_messages_are_processed_in_order():
    h = Harness()
    order: list[str] = []
    original = h.processor.process_message

    async def tracking(message):
        order.append(message.wire_message_id)
        await asyncio.sleep(0)
        return await original(message)

    h.processor.process_message = tracking  # type: ignore[method-assign]

    await h.process(
        _payload(messages=[_text("9771234567", f"wamid.{i}", f"msg {i}") for i in range(3)])
    )

    assert order == ["wamid.0", "wamid.1", "wamid.2"]
    assert [m.content for m in h.store.messages if m.direction == Direction.INBOUND] == [
        "msg 0", "msg 1", "msg 2",
    ]


@pytest.mark.asyncio
async def test_different_senders_are_processed_concurrently():
    h = Harness()
    both_waiting = asyncio.Event()
    seen: list[str] = []

    async def rendezvous(text, customer_id, history):
        seen.append(text)
        if len(seen) == 2:
            both_waiting.set()
        await both_waiting.wait()
        return f"re: {text}"

    h.generator.generate = rendezvous  # type: ignore[method-assign]

    first, second = await asyncio.gather(
        h.processor.process_webhook_payload(_payload(messages=[_text("9771111111", "wamid.a", "from a")])),
        h.processor.process_webhook_payload(_payload(messages=[_text("9772222222", "wamid.b", "from b")])),
    )
    await h.processor.drain()

    assert first.messages[0].reply == "re: from a"
    assert second.messages[0].reply == "re: from b"
    assert FALLBACK_REPLY not in [body for _, body in h.provider.texts]


@pytest.mark.asyncio
async def test_image_acknowledgement_gets_history():
    h = Harness()
    await h.process(_payload(messages=[_text("9771234567", "wamid.1", "Hi")]))
    h.clock.advance(timedelta(minutes=2))

    await h.process(
        _payload(
            messages=[
                {"from": "9771234567", "id": "wamid.2", "timestamp": "1775034100", "type": "image",
                 "image": {"id": "media-1", "caption": "my passport"}},
            ]
        )
    )

    text, _, history = h.generator.calls[-1]
    assert "image" in text
    assert history == [
        ChatTurn(role="user", content="Hi"),
        ChatTurn(role="assistant", content=h.generator.reply),
    ]
