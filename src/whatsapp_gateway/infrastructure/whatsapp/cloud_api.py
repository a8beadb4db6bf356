"""Async client for the WhatsApp Cloud API messages endpoint."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from whatsapp_gateway.application.codec.outbound import (
    encode_mark_read,
    encode_template,
    encode_text,
    extract_error,
    extract_message_id,
)
from whatsapp_gateway.application.exceptions import NotConfiguredError
from whatsapp_gateway.application.ports.provider import SendOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WhatsAppConfig:
    api_url: str
    api_version: str
    phone_number_id: str
    access_token: str
    timeout: float = 15.0

    @property
    def configured(self) -> bool:
        return bool(self.phone_number_id and self.access_token)

    @property
    def messages_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.api_version}/{self.phone_number_id}/messages"

    def media_url(self, media_id: str) -> str:
        return f"{self.api_url.rstrip('/')}/{self.api_version}/{media_id}"


class CloudApiClient:
    """Implements ``MessagingProvider``. Never retries; failures come back as outcomes."""

    def __init__(self, config: WhatsAppConfig, http: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._http = http or httpx.AsyncClient(timeout=config.timeout)
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.access_token}",
            "Content-Type": "application/json",
        }

    def _require_configured(self) -> None:
        if not self._config.configured:
            raise NotConfiguredError("WhatsApp credentials are not configured")

    async def _post_message(self, payload: dict[str, Any], *, to: str) -> SendOutcome:
        self._require_configured()
        try:
            response = await self._http.post(
                self._config.messages_url, json=payload, headers=self._headers
            )
        except httpx.HTTPError as exc:
            logger.error("WhatsApp send to %s failed: %s", to, exc)
            return SendOutcome(message_id=None, error_message=str(exc) or type(exc).__name__)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            message_id = extract_message_id(body)
            if message_id is None:
                logger.error("WhatsApp accepted send to %s without a message id", to)
                return SendOutcome(
                    message_id=None,
                    status_code=response.status_code,
                    error_message="No message id in provider response",
                )
            return SendOutcome(message_id=message_id, status_code=response.status_code)

        code, message = extract_error(body)
        logger.error(
            "WhatsApp send to %s rejected: status=%d code=%s message=%s",
            to,
            response.status_code,
            code,
            message or response.text[:500],
        )
        return SendOutcome(
            message_id=None,
            status_code=response.status_code,
            error_code=code,
            error_message=message or f"HTTP {response.status_code}",
        )

    async def send_text(self, to: str, body: str) -> SendOutcome:
        return await self._post_message(encode_text(to, body), to=to)

    async def send_template(
        self,
        to: str,
        template_name: str,
        language: str,
        components: list[dict[str, Any]] | None = None,
    ) -> SendOutcome:
        payload = encode_template(to, template_name, language, components)
        return await self._post_message(payload, to=to)

    async def mark_read(self, message_id: str) -> bool:
        self._require_configured()
        try:
            response = await self._http.post(
                self._config.messages_url,
                json=encode_mark_read(message_id),
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("Mark-as-read for %s failed: %s", message_id, exc)
            return False
        if not response.is_success:
            logger.warning("Mark-as-read for %s rejected: status=%d", message_id, response.status_code)
            return False
        return True

    async def get_media_url(self, media_id: str) -> str | None:
        """Short-lived download URL for an inbound media attachment."""
        self._require_configured()
        try:
            response = await self._http.get(
                self._config.media_url(media_id), headers=self._headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Media lookup for %s failed: %s", media_id, exc)
            return None
        if not response.is_success:
            logger.warning("Media lookup for %s rejected: status=%d", media_id, response.status_code)
            return None
        try:
            url = response.json().get("url")
        except (ValueError, AttributeError):
            return None
        return str(url) if url else None
