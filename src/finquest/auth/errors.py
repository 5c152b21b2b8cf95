"""Session and revocation errors."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication errors."""

    status_code = 401
    code = "auth_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)


class MalformedToken(AuthError):
    """Token has no readable expiry claim."""

    status_code = 400
    code = "malformed_token"


class AlreadyRevoked(AuthError):
    """Token is already on the revocation list."""

    status_code = 409
    code = "token_already_invalidated"


class Unauthorized(AuthError):
    """Request rejected by the session guard."""

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str, stage: str = "") -> None:
        self.stage = stage
        super().__init__(message)
