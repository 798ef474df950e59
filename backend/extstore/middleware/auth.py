"""Admin authentication dependencies for FastAPI."""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from extstore.config import settings
from extstore.services.auth import decode_access_token
from extstore.services.errors import NotAuthenticated, NotAuthorized

API_KEY_PRINCIPAL = "api-key"


@dataclass(frozen=True)
class AdminPrincipal:
    """Identity recorded as ``reviewer_email`` on review decisions."""

    email: str


def _is_admin_email(email: Optional[str]) -> bool:
    domain = settings.ADMIN_EMAIL_DOMAIN.lower()
    return bool(email) and email.lower().endswith(domain)


async def require_admin(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> AdminPrincipal:
    """Require an admin caller.

    Accepts either:
    1. ``X-API-Key`` equal to ``ADMIN_API_KEY`` (automation)
    2. ``Authorization: Bearer <jwt>`` whose ``email`` claim belongs to the
       admin email domain

    Raises:
        NotAuthenticated: no or invalid credentials
        NotAuthorized: valid token for a non-admin user
    """
    if x_api_key:
        if settings.ADMIN_API_KEY and hmac.compare_digest(x_api_key, settings.ADMIN_API_KEY):
            return AdminPrincipal(email=API_KEY_PRINCIPAL)
        raise NotAuthenticated("Invalid API key")

    if not authorization or not authorization.startswith("Bearer "):
        raise NotAuthenticated("Not authenticated. Please login.")

    payload = decode_access_token(authorization.replace("Bearer ", "", 1))
    email = payload.get("email")
    if not _is_admin_email(email):
        raise NotAuthorized("Admin access required")
    return AdminPrincipal(email=email)
