"""
SnapPDF Backend — Request Logging Middleware
=============================================

What:  One access log line per HTTP request.
How:   Measures time around call_next and logs method, path, status, duration,
       request ID and client IP. Severity follows the status class.
When:  Inside RequestIDMiddleware, so the request ID is already set.

Upload bodies and PDF bytes are never logged.

Duration note:
    For POST /convert the PDF is fully assembled before the response starts,
    so the logged duration covers compression and page assembly but not the
    time the client spends downloading the stream.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from snappdf.middleware.request_id import request_id_var

logger = logging.getLogger("snappdf.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Typical durations:
        - GET /health: 1-5ms
        - GET /conversions: 5-50ms (database query)
        - POST /convert: 100ms-10s depending on image count and size
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        # Health probes run every few seconds
        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
