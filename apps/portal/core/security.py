"""Bearer-token issuing and verification."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from apps.portal.core.config import Settings, get_settings


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be trusted."""


def create_access_token(
    user_id: str,
    role: str,
    *,
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Encode a signed token carrying the user id (``sub``) and role."""

    settings = settings or get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims: dict[str, Any] = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, *, settings: Settings | None = None) -> dict[str, Any]:
    """Decode ``token`` and return its claims; requires ``sub``, ``role`` and ``exp``."""

    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as exc:
        raise InvalidTokenError(f"Invalid token: {exc!s}") from exc
    if not payload.get("sub") or not payload.get("role"):
        raise InvalidTokenError("Token missing required claims")
    return payload
