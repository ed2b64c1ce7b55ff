from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from adminhub.core.security import InvalidToken, user_id_from_token
from adminhub.db.session import get_db
from adminhub.models.organization import User

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("security")

_UNAUTHORIZED = {
    "status_code": status.HTTP_401_UNAUTHORIZED,
    "detail": "Could not validate credentials",
    "headers": {"WWW-Authenticate": "Bearer"},
}


def _reject(event: str, request: Request, **extra) -> HTTPException:
    logger.info(
        json.dumps(
            {
                "event": event,
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "method": request.method,
                "client": request.client.host if request.client else None,
                **extra,
            },
            default=str,
        )
    )
    return HTTPException(**_UNAUTHORIZED)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token's ``sub`` claim to an active user."""
    if credentials is None or not credentials.credentials:
        raise _reject("token_missing", request)

    try:
        user_id = user_id_from_token(credentials.credentials)
    except InvalidToken as exc:
        raise _reject(str(exc), request) from None

    user = db.get(User, user_id)
    if user is None:
        raise _reject("user_unknown", request, user_id=user_id)
    if not user.is_active:
        raise _reject("user_inactive", request, user_id=user_id)
    return user
