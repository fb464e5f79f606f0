"""Shared test helpers (imported by conftest and individual test modules)."""

import hashlib
import hmac
from typing import Optional

from vendora_realtime.auth.identity import AuthenticationRejected, Identity
from vendora_realtime.realtime.connection import Connection

WEBHOOK_SECRET = "s3cret"


class FakeIdentityValidator:
    """In-memory identity authority: token → Identity."""

    def __init__(self, tokens: Optional[dict[str, Identity]] = None):
        self.tokens = dict(tokens or {})
        self.calls: list[str] = []
        self.error: Optional[Exception] = None

    async def validate(self, credential: str) -> Identity:
        self.calls.append(credential)
        if self.error is not None:
            raise self.error
        try:
            return self.tokens[credential]
        except KeyError:
            raise AuthenticationRejected("Invalid or expired token")


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def drain(connection: Connection) -> list[dict]:
    """Pop every queued frame from a connection's outbox."""
    frames = []
    while not connection.outbox.empty():
        frame = connection.outbox.get_nowait()
        if frame is not None:
            frames.append(frame)
    return frames
