"""Provider-facing webhook: subscription handshake and event delivery."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from whatsapp_gateway.api.deps import WebhookConfigDep, WebhookQueueDep
from whatsapp_gateway.application.codec.signature import (
    SIGNATURE_HEADER,
    verify_handshake_challenge,
    verify_signature,
)
from whatsapp_gateway.application.codec.webhook import WHATSAPP_OBJECT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/whatsapp", tags=["whatsapp"])


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    config: WebhookConfigDep,
    mode: str | None = Query(None, alias="hub.mode"),
    token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    result = verify_handshake_challenge(mode, token, challenge, config.verify_token)
    if not result.ok:
        logger.warning("Webhook verification rejected (mode=%s)", mode)
        return PlainTextResponse("Forbidden", status_code=403)
    logger.info("Webhook subscription verified")
    return PlainTextResponse(result.challenge or "")


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    config: WebhookConfigDep,
    queue: WebhookQueueDep,
) -> JSONResponse:
    """Verify, enqueue and acknowledge; processing happens in the webhook consumer."""
    if not config.configured:
        logger.warning("Webhook received but WhatsApp is not configured")
        return JSONResponse({"status": "not_configured"})

    raw_body = await request.body()
    if config.app_secret and not verify_signature(
        raw_body, request.headers.get(SIGNATURE_HEADER), config.app_secret
    ):
        logger.warning("Webhook signature mismatch")
        return JSONResponse({"detail": "Invalid signature"}, status_code=401)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        return JSONResponse({"detail": "Invalid JSON"}, status_code=400)

    if not isinstance(payload, dict) or payload.get("object") != WHATSAPP_OBJECT:
        return JSONResponse({"status": "ignored"})

    try:
        entry_id = await queue.enqueue(payload)
    except Exception:
        # Non-2xx makes the provider redeliver later.
        logger.exception("Failed to enqueue webhook payload")
        return JSONResponse({"status": "error"}, status_code=503)

    logger.debug("Webhook payload queued as %s", entry_id)
    return JSONResponse({"status": "received"})
