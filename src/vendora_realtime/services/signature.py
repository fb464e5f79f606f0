"""Webhook signature verification.

Learn: The Laravel backend signs the exact request body with
HMAC-SHA256 and the shared secret, and sends the hex digest in
X-Webhook-Signature. We recompute it over the raw bytes we received,
never over re-serialized JSON, which could differ in whitespace or key
order, and compare in constant time.

Two distinct failures:
- SignatureInvalid: the caller is not authorized (401)
- ServiceMisconfigured: no secret configured, nobody can be authorized (500)
"""

import hashlib
import hmac
import re
from typing import Optional

import structlog

logger = structlog.get_logger()

SIGNATURE_HEADER = "X-Webhook-Signature"

# Exactly one SHA-256 digest in hex, nothing else
_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


class SignatureInvalid(Exception):
    pass


class ServiceMisconfigured(Exception):
    pass


class SignatureVerifier:
    def __init__(self, secret: Optional[str]):
        self.secret = secret or None

    def sign(self, payload: bytes) -> str:
        """Hex HMAC-SHA256 of the payload under the configured secret."""
        if not self.secret:
            raise ServiceMisconfigured("Webhook secret not configured")
        return hmac.new(self.secret.encode(), payload, hashlib.sha256).hexdigest()

    def verify(self, payload: bytes, signature: Optional[str]) -> None:
        """Raise unless the signature matches the payload."""
        if not signature:
            logger.warning("webhook.rejected", reason="missing signature header")
            raise SignatureInvalid("Missing webhook signature")

        if not self.secret:
            logger.error("webhook.secret_not_configured")
            raise ServiceMisconfigured("Server configuration error")

        # Tolerate GitHub-style "sha256=<hex>"
        if signature.startswith("sha256="):
            signature = signature[7:]

        expected = bytes.fromhex(self.sign(payload))
        # bytes.fromhex() skips whitespace, so check the shape first
        if _HEX_DIGEST.fullmatch(signature):
            received = bytes.fromhex(signature)
        else:
            received = b""

        if len(received) != len(expected) or not hmac.compare_digest(received, expected):
            logger.warning(
                "webhook.rejected",
                reason="invalid signature",
                received=signature[:16] + "...",
                payload_length=len(payload),
            )
            raise SignatureInvalid("Invalid webhook signature")

        logger.debug("webhook.signature_verified")

    def is_valid(self, payload: bytes, signature: Optional[str]) -> bool:
        try:
            self.verify(payload, signature)
        except SignatureInvalid:
            return False
        return True
