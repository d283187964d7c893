"""
OrderDesk Backend — Request Logging Middleware
================================================

What:  One access-log line per HTTP request.
How:   Measures wall time around the downstream call and logs on the
       `orderdesk.access` logger:

           PATCH /order-status/3f0c… 200 12.4ms [a1b2c3d4] from 10.0.0.7 as ops@example.com

       The level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
       "as <subject>" appears only when the bearer gate accepted a token.

Privacy:
    Request bodies (passwords, customer documents), query strings (iqama
    numbers) and the Authorization header are never logged.
"""

import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from orderdesk.middleware.request_id import request_id_var

logger = logging.getLogger("orderdesk.access")

# Probed every few seconds by load balancers
_QUIET_PATHS = frozenset({"/", "/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _subject_of(request: Request) -> Optional[str]:
    identity = getattr(request.state, "identity", None)
    if not identity:
        return None
    return identity.get("sub")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for every route except the liveness probes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        entry = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(elapsed_ms, 2),
            "client_ip": request.client.host if request.client else "unknown",
            "subject": _subject_of(request),
        }
        message = "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] from %(client_ip)s"
        if entry["subject"]:
            message += " as %(subject)s"
        logger.log(_level_for(entry["status"]), message, entry, extra=entry)
        return response
