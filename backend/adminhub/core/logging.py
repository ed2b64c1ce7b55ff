from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from adminhub.core.security import InvalidToken, user_id_from_token

# Keys copied from ``extra=`` onto the JSON line when present.
_CONTEXT_KEYS = (
    "request_id",
    "user_id",
    "business_unit_id",
    "path",
    "method",
    "status_code",
    "latency_ms",
    "entity",
    "entity_id",
    "from_status",
    "to_status",
    "execution_id",
    "asset_count",
)

# Responses the security logger records in addition to the access line.
_AUDITED_STATUSES = {401: "unauthenticated", 403: "forbidden"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with whatever request/workflow context was attached."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: getattr(record, key) for key in _CONTEXT_KEYS if hasattr(record, key)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _caller_id(request: Request) -> Optional[int]:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        return user_id_from_token(token.strip())
    except InvalidToken:
        return None


def _business_unit_id(request: Request) -> Optional[int]:
    raw = request.query_params.get("business_unit_id")
    if raw is None:
        raw = request.path_params.get("business_unit_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, tagged with the caller and business unit.

    Assigns ``X-Request-Id`` when the client did not send one and echoes it
    back. 401 and 403 responses also go to the ``security`` logger.
    """

    def __init__(self, app, logger_name: str = "request") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)
        self.security_logger = logging.getLogger("security")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        context = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "user_id": _caller_id(request),
        }
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            context["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
            self.logger.exception("unhandled_exception", extra=context)
            raise

        context.update(
            status_code=response.status_code,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            business_unit_id=_business_unit_id(request),
        )
        self.logger.info("request", extra=context)

        audit_event = _AUDITED_STATUSES.get(response.status_code)
        if audit_event:
            self.security_logger.info(audit_event, extra=context)

        response.headers["X-Request-Id"] = request_id
        return response
