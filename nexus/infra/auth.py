from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from nexus.config import Settings


def create_access_token(
    settings: Settings,
    *,
    user_id: str,
    email: str,
    organization_id: str | None,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or settings.jwt_expires_min)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "organization_id": organization_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> dict[str, Any]:
    """Verify a token issued by ``create_access_token`` and return its claims."""
    decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    return decoded
