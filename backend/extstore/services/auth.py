"""Authentication utilities: encode and decode JWT access tokens for reviewers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from extstore.config import settings
from extstore.services.errors import NotAuthenticated


def create_access_token(
    subject: str, email: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token carrying the reviewer's email.

    Session issuance lives outside this service; this is used by tooling and
    tests to mint tokens the API accepts.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(subject),
        "email": email,
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT access token.

    Raises:
        NotAuthenticated: If token is invalid, expired, or malformed
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise NotAuthenticated(f"Invalid token: {e}") from e

    if payload.get("type") != "access":
        raise NotAuthenticated("Invalid token type")
    return payload
