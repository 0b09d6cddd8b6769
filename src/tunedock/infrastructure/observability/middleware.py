"""Middleware for observability: correlation ids and request logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tunedock.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me, every log line emitted while handling a request - including the
# provider call failures the Host logs during a search fan-out - carries the same
# correlation id. Clients can send their own via X-Correlation-ID.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Sets the correlation id and logs each request with its duration."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get(CORRELATION_HEADER))

        method = request.method
        path = request.url.path
        logger.debug(
            "→ %s %s", method, path, extra={"method": method, "path": path}
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed: %s %s",
                method,
                path,
                extra={"method": method, "path": path},
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        status_emoji = "✓" if response.status_code < 400 else "✗"
        logger.info(
            "%s %s %s → %d (%dms)",
            status_emoji,
            method,
            path,
            response.status_code,
            duration_ms,
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
