"""
SightEd Backend — Request Logging Middleware
==============================================

What:  One access log line per request: method, path, status, duration,
       request ID and client IP.
When:  Runs inside RequestIDMiddleware so the correlation ID is available.

Privacy:
    Logged:     method, path, status, duration, IP, request ID
    Not logged: query strings (Google access tokens travel there), bodies,
                uploaded image bytes, Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sighted.middleware.request_id import request_id_var

logger = logging.getLogger("sighted.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each HTTP request with a level chosen from the response status.

        5xx → ERROR, 4xx → WARNING, everything else → INFO

    Typical durations:
        GET /health:         1-5ms
        GET /saved:          5-50ms (store listing)
        POST /upload:        2000-10000ms (Vision + Gemini dominate)
        GET /proxy/...:      200-3000ms (Google Photos download, up to 3 attempts)
    """

    # Health probes run every few seconds and would drown real traffic
    SKIPPED_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
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
