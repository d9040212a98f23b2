"""
SightEd Backend — Request ID Middleware
=========================================

What:  Assigns a short correlation ID to each request and echoes it back in
       the X-Request-ID response header.
How:   Client-supplied X-Request-ID wins; otherwise the first 8 characters of
       a uuid4. The value lives in a ContextVar so the access logger and the
       global exception handlers can read it without the Request object.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attaches a request ID to request.state, the ContextVar and the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
