"""Session guard: bearer extraction, revocation check, then signature check."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import jwt
import structlog

from finquest.auth.errors import Unauthorized
from finquest.auth.jwt import TokenVerifier
from finquest.auth.revocation import TokenRevocationStore

logger = structlog.get_logger()


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_EXTRACTED = "token_extracted"
    REVOCATION_CHECKED = "revocation_checked"
    SIGNATURE_VERIFIED = "signature_verified"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Identity:
    user_id: str
    token: str
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def role(self) -> str | None:
        role = self.claims.get("role")
        return role if isinstance(role, str) else None


def extract_bearer(authorization: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class SessionGuard:
    """Admits a request only when its token is present, not revoked and valid.

    The revocation lookup runs before the signature is trusted, so a revoked
    token is rejected even while its signature and expiry are still good.
    A rejection carries the last state reached (``Unauthorized.stage``) and
    none of the token's claims.
    """

    def __init__(self, store: TokenRevocationStore, verifier: TokenVerifier) -> None:
        self._store = store
        self._verifier = verifier

    async def authenticate(self, authorization: str | None) -> Identity:
        state = SessionState.UNAUTHENTICATED
        token = extract_bearer(authorization)
        if token is None:
            msg = "Missing bearer token"
            raise Unauthorized(msg, stage=state.value)

        state = SessionState.TOKEN_EXTRACTED
        if await self._store.is_revoked(token):
            logger.info("revoked_token_rejected")
            msg = "Token has been invalidated"
            raise Unauthorized(msg, stage=state.value)

        state = SessionState.REVOCATION_CHECKED
        try:
            claims = self._verifier.verify(token)
        except jwt.InvalidTokenError as e:
            raise Unauthorized(str(e) or "Invalid token", stage=state.value) from e

        state = SessionState.SIGNATURE_VERIFIED
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            msg = "Token subject is missing"
            raise Unauthorized(msg, stage=state.value)

        return Identity(user_id=subject, token=token, claims=claims)
