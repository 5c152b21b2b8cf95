"""
JWT verification helpers.

Tokens are issued by the identity service; this module only verifies,
decodes and fingerprints them.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import jwt

from finquest.auth.errors import MalformedToken
from finquest.config import Settings


class TokenVerifier:
    """Verify signatures with the configured algorithm and key."""

    def __init__(self, settings: Settings) -> None:
        self._algorithm = settings.jwt_algorithm
        self._issuer = settings.jwt_issuer
        self._key_path = settings.jwt_public_key_path
        self._secret = settings.jwt_secret
        self._key: str | None = None

    def _verification_key(self) -> str:
        """Shared secret for HS* algorithms, PEM public key otherwise (cached)."""
        if self._key is None:
            if self._algorithm.startswith("HS"):
                self._key = self._secret
            else:
                self._key = Path(self._key_path).read_text()
        return self._key

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verify and decode a JWT.

        Args:
            token: The encoded JWT string.

        Returns:
            Decoded payload dictionary.

        Raises:
            jwt.InvalidTokenError: If the signature, expiry or issuer is invalid,
                or the token carries no subject.
        """
        options: dict[str, Any] = {"require": ["exp", "sub"]}
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self._verification_key(),
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            msg = "Token has expired"
            raise jwt.InvalidTokenError(msg) from None
        return payload


def read_expiry(token: str) -> datetime:
    """Read the `exp` claim without verifying the signature.

    Raises:
        MalformedToken: If the token cannot be decoded or has no numeric exp.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError as e:
        msg = "Token cannot be decoded"
        raise MalformedToken(msg) from e

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        msg = "Token has no valid expiry claim"
        raise MalformedToken(msg)
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        msg = "Token expiry claim is out of range"
        raise MalformedToken(msg) from e


def hash_token(token: str) -> str:
    """SHA-256 fingerprint stored instead of the raw token."""
    return hashlib.sha256(token.encode()).hexdigest()
