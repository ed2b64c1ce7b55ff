from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from adminhub.core.settings import settings


def _expiry_delta(expires_delta: Optional[timedelta]) -> timedelta:
    if expires_delta is not None:
        return expires_delta
    minutes = settings.access_token_expire_minutes
    if minutes <= 0:
        minutes = 60
    return timedelta(minutes=minutes)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign a bearer token. Tokens are normally issued by the identity provider;
    this is used by tooling and tests."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.setdefault("iat", now)
    to_encode.update({"exp": now + _expiry_delta(expires_delta)})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.algorithm])


class InvalidToken(ValueError):
    """Bearer token failed verification or does not name a user."""


def user_id_from_token(token: str) -> int:
    try:
        payload = decode_token(token)
    except JWTError as exc:
        raise InvalidToken("token_invalid") from exc
    subject = payload.get("sub")
    if subject is None:
        raise InvalidToken("token_missing_sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise InvalidToken("token_bad_sub") from exc
