"""Seed the template catalog with the templates the gateway sends by name."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert

from whatsapp_gateway.infrastructure.db.models.template import MessageTemplateModel
from whatsapp_gateway.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

TEMPLATES: list[dict[str, object]] = [
    {
        "name": "session_greeting",
        "language": "en",
        "variable_count": 0,
        "body_text": "Hello! We're here to help with your travel plans. Reply to continue the conversation.",
    },
    {
        "name": "quote_ready",
        "language": "en",
        "variable_count": 2,
        "body_text": "Your quote {{1}} is ready. Total: {{2}}. Reply to review the details.",
    },
    {
        "name": "booking_confirmed",
        "language": "en",
        "variable_count": 3,
        "body_text": "Booking {{1}} to {{2}} is confirmed. Departure: {{3}}.",
    },
    {
        "name": "payment_reminder",
        "language": "en",
        "variable_count": 3,
        "body_text": "Reminder: payment of {{2}} for booking {{1}} is due on {{3}}.",
    },
]


async def seed() -> None:
    async with AsyncSessionLocal() as session:
        for template in TEMPLATES:
            stmt = (
                pg_insert(MessageTemplateModel)
                .values(**template)
                .on_conflict_do_nothing(index_elements=["name"])
            )
            await session.execute(stmt)
        await session.commit()
    logger.info("Seeded %d templates", len(TEMPLATES))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
