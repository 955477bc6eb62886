"""Per-request id propagation and access logging."""

import logging
import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from clinicroute.core.structured_logging import build_log_context

logger = logging.getLogger("clinicroute.access")

REQUEST_ID_HEADER = "X-Request-ID"

# Fits AuditLog.request_id (String(64))
_VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")

_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str | None:
    """Request id of the request being handled, if any."""
    return _REQUEST_ID.get()


def resolve_request_id(incoming: str | None) -> str:
    """Caller's id when well-formed, otherwise a fresh one."""
    if incoming and _VALID_REQUEST_ID.fullmatch(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assign a request id (or reuse the caller's) and log one line per request.

    The id is echoed back in X-Request-ID and stored on request.state so
    audit entries and error logs can be correlated.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = _REQUEST_ID.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            _REQUEST_ID.reset(token)

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        session = getattr(request.state, "user_session", None)
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra=build_log_context(
                request_id=request_id,
                route=request.url.path,
                method=request.method,
                status_code=response.status_code,
                duration_ms=duration_ms,
                user_id=str(session.user_id) if session else None,
                clinic_id=str(session.clinic_id) if session else None,
            ),
        )
        return response
