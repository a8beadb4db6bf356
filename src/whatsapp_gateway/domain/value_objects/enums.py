from __future__ import annotations

from enum import StrEnum


class Direction(StrEnum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageType(StrEnum):
    TEXT = "text"
    TEMPLATE = "template"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    STICKER = "sticker"
    INTERACTIVE = "interactive"
    LOCATION = "location"
    UNKNOWN = "unknown"


MEDIA_TYPES: frozenset[str] = frozenset(
    {MessageType.IMAGE, MessageType.DOCUMENT, MessageType.AUDIO, MessageType.VIDEO, MessageType.STICKER}
)


class DeliveryStatus(StrEnum):
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# Statuses a row may hold for a webhook status event to be applied.
# Events arrive out of order; a late "delivered" must not undo "read".
STATUS_PREDECESSORS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.SENT: frozenset({DeliveryStatus.QUEUED, DeliveryStatus.SENT}),
    DeliveryStatus.DELIVERED: frozenset(
        {DeliveryStatus.QUEUED, DeliveryStatus.SENT, DeliveryStatus.DELIVERED}
    ),
    DeliveryStatus.READ: frozenset(
        {DeliveryStatus.QUEUED, DeliveryStatus.SENT, DeliveryStatus.DELIVERED, DeliveryStatus.READ}
    ),
    DeliveryStatus.FAILED: frozenset(
        {DeliveryStatus.QUEUED, DeliveryStatus.SENT, DeliveryStatus.DELIVERED, DeliveryStatus.FAILED}
    ),
}


class ConversationFilter(StrEnum):
    ALL = "all"
    UNLINKED = "unlinked"
    ACTIVE = "active"


class PrincipalKind(StrEnum):
    ADMIN = "admin"
    SERVICE = "service"
    USER = "user"
