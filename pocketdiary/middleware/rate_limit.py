"""
Pocket Diary Backend: Rate Limiting Middleware
================================================

What:  Per-IP sliding-window rate limiter with two buckets.
How:   Timestamps per (bucket, IP) in memory. Each request drops timestamps
       older than the window and is rejected with 429 when the bucket is full.

Buckets:
    auth     POST /api/users/login, /api/users/register
             AUTH_RATE_LIMIT_REQUESTS per AUTH_RATE_LIMIT_WINDOW (slows
             password guessing)
    default  everything else except /health and the docs
             RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW

In-memory state is per process; with several workers each enforces its own
budget.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pocketdiary.config import settings
from pocketdiary.exceptions import RateLimitExceededError
from pocketdiary.middleware.logging import client_ip_of
from pocketdiary.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

AUTH_PATHS = {"/api/users/login", "/api/users/register"}
EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


class SlidingWindow:
    """Timestamps per key inside a trailing window."""

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        self._hits: Dict[str, List[float]] = defaultdict(list)

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Record a hit for `key`.

        Returns:
            None if allowed, otherwise seconds until the oldest hit expires.
        """
        now = time.time() if now is None else now
        window_start = now - self.window
        hits = [ts for ts in self._hits[key] if ts > window_start]
        self._hits[key] = hits

        if len(hits) >= self.limit:
            return int(hits[0] + self.window - now) + 1

        hits.append(now)
        if len(self._hits) > 1000 and len(hits) == 1:
            self._cleanup(window_start)
        return None

    def _cleanup(self, window_start: float) -> None:
        inactive = [k for k, ts in self._hits.items() if not ts or ts[-1] <= window_start]
        for k in inactive:
            del self._hits[k]
        if inactive:
            logger.debug("Cleaned up %d inactive rate-limit entries", len(inactive))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects over-budget clients with 429 and a Retry-After header."""

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self.buckets: Dict[str, SlidingWindow] = {
            "auth": SlidingWindow(settings.auth_rate_limit_requests, settings.auth_rate_limit_window),
            "default": SlidingWindow(settings.rate_limit_requests, settings.rate_limit_window),
        }

    def _bucket_for(self, request: Request) -> Optional[Tuple[str, SlidingWindow]]:
        path = request.url.path
        if path in EXCLUDED_PATHS or request.method == "OPTIONS":
            return None
        name = "auth" if path in AUTH_PATHS else "default"
        return name, self.buckets[name]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        selected = self._bucket_for(request)
        if selected is None:
            return await call_next(request)

        name, bucket = selected
        client_ip = client_ip_of(request)
        retry_after = bucket.hit(client_ip)
        if retry_after is None:
            return await call_next(request)

        logger.warning(
            "Rate limit exceeded for IP %s on %s bucket (%d per %ds)",
            client_ip,
            name,
            bucket.limit,
            bucket.window,
        )
        exc = RateLimitExceededError(retry_after=retry_after)
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "details": {"retry_after": retry_after},
                "request_id": request_id_var.get(""),
            },
            headers={"Retry-After": str(retry_after)},
        )
