"""Session authenticator — decides whether and as whom a connection joins.

Learn: The decision table is small on purpose:

    token  guest   outcome
    -----  -----   -------
    no     yes     guest "guest_<connection id>", role "guest"
    no     no      rejected: token required
    yes    any     ask the identity authority; any failure → rejected

Every failure of the authority (down, slow, 401, garbage body) collapses
into the same "Invalid or expired token" rejection, so an unauthenticated
caller cannot tell an outage from a bad token.
"""

from typing import Optional

import structlog

from vendora_realtime.auth.identity import (
    AuthenticationRejected,
    Identity,
    IdentityValidator,
)

logger = structlog.get_logger()

GUEST_ROLE = "guest"

TOKEN_REQUIRED = "Authentication token required"
TOKEN_INVALID = "Invalid or expired token"


class SessionAuthenticator:
    def __init__(self, validator: IdentityValidator, *, allow_guests: bool = True):
        self.validator = validator
        self.allow_guests = allow_guests

    async def authenticate(
        self,
        connection_id: str,
        credential: Optional[str] = None,
        guest: bool = False,
    ) -> Identity:
        """Resolve the identity for a new connection.

        Raises AuthenticationRejected when the connection must be refused.
        """
        if not credential:
            if guest and self.allow_guests:
                logger.debug("auth.guest_admitted", connection_id=connection_id)
                return Identity(
                    user_id=f"guest_{connection_id}",
                    role=GUEST_ROLE,
                    anonymous=True,
                )
            logger.warning("auth.rejected", reason="no token provided")
            raise AuthenticationRejected(TOKEN_REQUIRED)

        try:
            identity = await self.validator.validate(credential)
        except AuthenticationRejected:
            logger.warning("auth.rejected", reason="invalid or expired token")
            raise AuthenticationRejected(TOKEN_INVALID)
        except Exception as e:
            logger.warning("auth.rejected", reason="validator error", error=str(e))
            raise AuthenticationRejected(TOKEN_INVALID) from e

        logger.debug(
            "auth.user_authenticated",
            connection_id=connection_id,
            user_id=identity.user_id,
            email=identity.email,
        )
        return identity
