"""Identity value object and the identity-authority client.

Learn: The external authority is a single capability —
validate(credential) -> Identity, or raise AuthenticationRejected.
HttpIdentityValidator is the production implementation (Laravel
Sanctum's /auth/me); tests inject a fake with the same method.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol

import httpx
import structlog

logger = structlog.get_logger()


class AuthenticationRejected(Exception):
    """Raised when a connection may not be admitted."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class Identity:
    """Who a live connection belongs to."""

    user_id: str
    role: Optional[str] = None
    anonymous: bool = False
    email: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class IdentityValidator(Protocol):
    async def validate(self, credential: str) -> Identity:
        ...


def identity_from_profile(body: Any) -> Identity:
    """Build an Identity from an /auth/me response body.

    Laravel returns either {"user": {...}} or the user object itself.
    Raises ValueError when the body has no usable user id.
    """
    if not isinstance(body, dict):
        raise ValueError("profile is not an object")
    user = body.get("user") or body
    if not isinstance(user, dict) or user.get("id") in (None, ""):
        raise ValueError("profile has no user id")

    role = user.get("role") or user.get("user_type")
    return Identity(
        user_id=str(user["id"]),
        role=str(role) if role else None,
        anonymous=False,
        email=user.get("email"),
        name=user.get("name"),
    )


class HttpIdentityValidator:
    """Validate bearer tokens against the Laravel API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def validate(self, credential: str) -> Identity:
        try:
            resp = await self._client.get(
                "/auth/me",
                headers={
                    "Authorization": f"Bearer {credential}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error("auth.authority_unreachable", error=str(e))
            raise AuthenticationRejected("Invalid or expired token") from e

        if not resp.is_success:
            logger.debug("auth.authority_rejected", status=resp.status_code)
            raise AuthenticationRejected("Invalid or expired token")

        try:
            return identity_from_profile(resp.json())
        except ValueError as e:
            logger.warning("auth.malformed_profile", error=str(e))
            raise AuthenticationRejected("Invalid or expired token") from e

    async def aclose(self) -> None:
        await self._client.aclose()
