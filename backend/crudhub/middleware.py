"""HTTP middleware: rate limiting, security headers and access logging."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .errors import RateLimitExceededError, error_body

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Resource-Policy": "same-origin",
}


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._last_prune = clock()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _prune(self, now: float) -> None:
        """Forget clients whose window has expired. Caller holds the lock."""

        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_prune = now

    async def hit(self, key: str) -> int:
        """
        Count one request for ``key`` and return how many remain in the window.

        Raises ``RateLimitExceededError`` once the window is exhausted.
        """

        now = self._clock()
        async with self._lock:
            if now - self._last_prune >= self.window_seconds:
                self._prune(now)
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self.window_seconds:
                window = _Window(started_at=now)
                self._windows[key] = window
            window.count += 1
            remaining = self.max_requests - window.count
        if remaining < 0:
            raise RateLimitExceededError()
        return remaining

    async def reset(self, key: Optional[str] = None) -> None:
        async with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def install_middleware(app: FastAPI, limiter: RateLimiter, prefix: str = "/api") -> None:
    """Register the rate limit, security header and access log middleware."""

    @app.middleware("http")
    async def rate_limit(request: Request, call_next) -> Response:
        path = request.url.path
        if path != prefix and not path.startswith(prefix + "/"):
            return await call_next(request)
        try:
            remaining = await limiter.hit(client_key(request))
        except RateLimitExceededError as exc:
            logger.warning("Rate limit exceeded for %s", client_key(request))
            return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))
        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["RateLimit-Remaining"] = str(remaining)
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:
        """Log method, path, status and processing time of every request."""
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        logger.info(
            "%s %s %s - %s - %.4fs",
            client_key(request),
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )
        return response
