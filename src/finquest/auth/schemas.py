"""Response schemas for session endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class LogoutResponse(BaseModel):
    """Token revoked until its own expiry."""

    message: str = "Logged out"
    revoked_until: datetime | None = None


class IdentityResponse(BaseModel):
    """Claims of the token that authorized the request."""

    user_id: str
    role: str | None = None
    claims: dict[str, Any]
