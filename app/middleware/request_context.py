"""Request context middleware: request id, timing, one summary log line.

The request id comes from the caller's X-Request-ID header or a fresh
UUID.  It is held in a ContextVar (per asyncio task, so concurrent
requests on one thread never see each other's id) and a logging filter
stamps it onto every LogRecord emitted while the request runs.

Rate-limit headers recorded by the rate-limit dependency on
``request.state`` are copied onto the response here.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import code_hint

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_VERIFY_PREFIX = "/v1/verify/"


def _loggable_path(path: str) -> str:
    """Request path with any verification code cut down to a hint."""
    if path.startswith(_VERIFY_PREFIX):
        return _VERIFY_PREFIX + code_hint(path[len(_VERIFY_PREFIX) :])
    return path


class _RequestContextFilter(logging.Filter):
    """Adds ``request_id`` to every record; formatters only read fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        path = _loggable_path(request.url.path)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

            rate_limit_headers = getattr(request.state, "rate_limit_headers", {})
            for name, value in rate_limit_headers.items():
                response.headers.setdefault(name, value)
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
