"""Bearer token helpers for staff sessions."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from foodbank.core.config import settings

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(minutes=30)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token carrying ``data`` (``sub`` is the staff id)."""
    claims = {
        **data,
        "exp": datetime.now(timezone.utc) + (expires_delta or ACCESS_TOKEN_TTL),
        "type": "access",
        "nonce": secrets.token_urlsafe(16),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Decoded claims, or None for a bad signature, expiry or garbage."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
