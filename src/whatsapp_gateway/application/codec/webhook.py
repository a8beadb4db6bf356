"""Inbound webhook envelope parsing.

The provider batches events as ``entry[].changes[].value`` with optional
``messages``, ``statuses`` and ``contacts`` arrays. Each item is validated on
its own; a bad item lands in ``ParsedWebhook.errors`` and the rest of the
batch still goes through.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from whatsapp_gateway.application.dto.webhook import InboundMessage, ParsedWebhook, StatusEvent
from whatsapp_gateway.domain.value_objects.enums import MEDIA_TYPES, MessageType
from whatsapp_gateway.domain.value_objects.phone import normalize_phone_number

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _Text(_WireModel):
    body: str = ""


class _Media(_WireModel):
    id: str
    mime_type: str | None = None
    caption: str | None = None
    filename: str | None = None


class _Reply(_WireModel):
    id: str | None = None
    title: str = ""


class _Interactive(_WireModel):
    type: str | None = None
    button_reply: _Reply | None = None
    list_reply: _Reply | None = None


class _Button(_WireModel):
    text: str = ""
    payload: str | None = None


class _Location(_WireModel):
    latitude: float
    longitude: float
    name: str | None = None
    address: str | None = None


class _WireMessage(_WireModel):
    sender: str = Field(alias="from")
    id: str
    timestamp: int
    type: str
    text: _Text | None = None
    image: _Media | None = None
    document: _Media | None = None
    audio: _Media | None = None
    video: _Media | None = None
    sticker: _Media | None = None
    interactive: _Interactive | None = None
    button: _Button | None = None
    location: _Location | None = None


class _WireError(_WireModel):
    code: int | str | None = None
    title: str | None = None
    message: str | None = None


class _WireStatus(_WireModel):
    id: str
    status: Literal["sent", "delivered", "read", "failed"]
    timestamp: int
    recipient_id: str | None = None
    errors: list[_WireError] = Field(default_factory=list)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _to_datetime(epoch_seconds: int) -> datetime:
    try:
        return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp {epoch_seconds} out of range") from exc


def _item_id(raw: Any) -> str:
    if isinstance(raw, dict) and raw.get("id"):
        return str(raw["id"])
    return "<unknown>"


def _contact_names(contacts: Any) -> dict[str, str]:
    names: dict[str, str] = {}
    for contact in _as_list(contacts):
        if not isinstance(contact, dict):
            continue
        wa_id = contact.get("wa_id")
        profile = contact.get("profile")
        name = profile.get("name") if isinstance(profile, dict) else None
        if wa_id and name:
            names[normalize_phone_number(str(wa_id))] = str(name)
    return names


def _location_text(location: _Location) -> str:
    label = location.name or "Location"
    text = f"{label}: {location.latitude},{location.longitude}"
    if location.address:
        text = f"{text} ({location.address})"
    return text


def _to_inbound(raw: Any, names: dict[str, str]) -> InboundMessage:
    wire = _WireMessage.model_validate(raw)
    sender = normalize_phone_number(wire.sender)
    if not sender:
        raise ValueError("sender has no digits")

    text: str | None = None
    media: _Media | None = None
    kind = wire.type

    if kind == MessageType.TEXT:
        text = wire.text.body if wire.text else ""
    elif kind in MEDIA_TYPES:
        media = getattr(wire, kind)
        if media is None:
            raise ValueError(f"{kind} message without {kind} payload")
    elif kind == MessageType.INTERACTIVE and wire.interactive is not None:
        reply = wire.interactive.button_reply or wire.interactive.list_reply
        text = reply.title if reply else None
    elif kind == "button" and wire.button is not None:
        # Quick-reply button tapped on a template message.
        kind = MessageType.INTERACTIVE
        text = wire.button.text
    elif kind == MessageType.LOCATION and wire.location is not None:
        text = _location_text(wire.location)
    elif kind not in set(MessageType):
        kind = MessageType.UNKNOWN

    return InboundMessage(
        sender=sender,
        sender_name=names.get(sender, ""),
        wire_message_id=wire.id,
        timestamp=_to_datetime(wire.timestamp),
        type=str(kind),
        text=text,
        media_id=media.id if media else None,
        media_type=media.mime_type if media else None,
        caption=media.caption if media else None,
    )


def _to_status(raw: Any) -> StatusEvent:
    wire = _WireStatus.model_validate(raw)
    error = wire.errors[0] if wire.errors else None
    return StatusEvent(
        wire_message_id=wire.id,
        status=wire.status,
        timestamp=_to_datetime(wire.timestamp),
        recipient_id=wire.recipient_id,
        error_code=str(error.code) if error and error.code is not None else None,
        error_message=(error.message or error.title) if error else None,
    )


def parse_webhook(payload: Any) -> ParsedWebhook:
    parsed = ParsedWebhook()
    if not isinstance(payload, dict):
        parsed.errors.append("Webhook payload is not an object")
        return parsed

    for entry in _as_list(payload.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                continue
            names = _contact_names(value.get("contacts"))

            for raw in _as_list(value.get("messages")):
                try:
                    parsed.messages.append(_to_inbound(raw, names))
                except (ValueError, TypeError) as exc:
                    logger.warning("Skipping malformed message %s: %s", _item_id(raw), exc)
                    parsed.errors.append(f"Malformed message {_item_id(raw)}: {exc}")

            for raw in _as_list(value.get("statuses")):
                try:
                    parsed.statuses.append(_to_status(raw))
                except (ValueError, TypeError) as exc:
                    logger.warning("Skipping malformed status %s: %s", _item_id(raw), exc)
                    parsed.errors.append(f"Malformed status {_item_id(raw)}: {exc}")

    return parsed
