"""Reply generator adapters."""
from __future__ import annotations

import logging

import httpx

from whatsapp_gateway.application.ports.reply import ChatTurn

logger = logging.getLogger(__name__)


class HttpReplyGenerator:
    """Calls the agent service over HTTP.

    Request: ``{"message", "customer_id", "history": [{"role", "content"}], "channel"}``.
    Response: ``{"reply": "..."}``. Transport and HTTP errors propagate to the caller.
    """

    def __init__(
        self,
        url: str,
        http: httpx.AsyncClient,
        *,
        token: str = "",
    ) -> None:
        self._url = url
        self._http = http
        self._token = token

    async def generate(
        self,
        text: str,
        customer_id: int | None,
        history: list[ChatTurn],
    ) -> str:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        response = await self._http.post(
            self._url,
            json={
                "message": text,
                "customer_id": customer_id,
                "history": [{"role": turn.role, "content": turn.content} for turn in history],
                "channel": "whatsapp",
            },
            headers=headers,
        )
        response.raise_for_status()
        body = response.json()
        reply = body.get("reply") if isinstance(body, dict) else None
        if not isinstance(reply, str):
            logger.warning("Reply service returned no reply text")
            return ""
        return reply


class NullReplyGenerator:
    """Used when no reply service is configured: never answers."""

    async def generate(
        self,
        text: str,
        customer_id: int | None,
        history: list[ChatTurn],
    ) -> str:
        return ""
