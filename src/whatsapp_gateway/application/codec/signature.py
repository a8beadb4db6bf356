"""Webhook authenticity checks: payload HMAC and the subscription handshake."""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="
HANDSHAKE_MODE = "subscribe"


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(raw_body: bytes, header_signature: str | None, secret: str | None) -> bool:
    """Constant-time check of ``sha256=<hex>`` against the raw body.

    Fails closed: a missing secret or header is never valid.
    """
    if not secret or not header_signature:
        return False
    received = header_signature.strip()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX):]
    expected = compute_signature(secret, raw_body)
    return hmac.compare_digest(expected.encode("ascii"), received.lower().encode("utf-8"))


@dataclass(frozen=True, slots=True)
class HandshakeResult:
    ok: bool
    challenge: str | None = None


def verify_handshake_challenge(
    mode: str | None,
    token: str | None,
    challenge: str | None,
    verify_token: str | None,
) -> HandshakeResult:
    if mode != HANDSHAKE_MODE or not verify_token or token is None:
        return HandshakeResult(ok=False)
    if not hmac.compare_digest(token.encode("utf-8"), verify_token.encode("utf-8")):
        return HandshakeResult(ok=False)
    return HandshakeResult(ok=True, challenge=challenge or "")
