from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from finance_tracker.errors import NotAuthorizedError

ALGORITHM = "HS256"


def issue_token(owner: str, secret: str, ttl_hours: float = 720) -> str:
    """Sign a bearer token whose ``id`` claim names *owner*."""
    now = datetime.now(timezone.utc)
    payload = {"id": str(owner), "iat": now, "exp": now + timedelta(hours=ttl_hours)}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def extract_bearer(header_value: str | None) -> str | None:
    if not header_value:
        return None
    if header_value.startswith("Bearer "):
        token = header_value[7:].strip()
        return token or None
    return None


def verify_token(token: str | None, secret: str) -> str:
    """Return the owner id carried by *token* or raise ``NotAuthorizedError``."""
    if not token:
        raise NotAuthorizedError("Not authorized, no token")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise NotAuthorizedError("Not authorized, token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise NotAuthorizedError("Not authorized, token failed") from exc
    owner = payload.get("id")
    if not owner:
        raise NotAuthorizedError("Not authorized, token failed")
    return str(owner)
