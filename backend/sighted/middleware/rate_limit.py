"""
SightEd Backend — Rate Limiting Middleware
============================================

What:  Per-IP sliding window rate limiter.
Why:   Every /upload costs a Vision call and a Gemini call against shared
       Google quotas; one misbehaving client should not exhaust them.
How:   Each IP maps to a list of request timestamps. Timestamps older than
       the window are dropped on every request; if the remaining count has
       reached the limit the request is rejected with 429 and Retry-After.

Limits are process-local. With several uvicorn workers each worker counts
independently.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sighted.config import settings
from sighted.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings unless overridden):
        rate_limit_requests: Max requests per window (default: 300)
        rate_limit_window:   Window duration in seconds (default: 3600)
    """

    EXCLUDED_PATHS = {"/", "/health", "/docs", "/openapi.json", "/redoc"}

    # Sweep inactive IPs once this many requests have been recorded
    CLEANUP_EVERY = 1000

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window_seconds

        # ── Sliding Window: Clean old entries ─────────────────────────────
        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        # ── Check rate limit ──────────────────────────────────────────────
        if len(recent) >= self.max_requests:
            retry_after = int(recent[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(recent),
                self.window_seconds,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    # Runs ahead of RequestIDMiddleware; only a client-supplied id is known here
                    "request_id": request.headers.get("X-Request-ID"),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        recent.append(now)
        self._seen += 1
        if self._seen % self.CLEANUP_EVERY == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Drops IPs with no request inside the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
