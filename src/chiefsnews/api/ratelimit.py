"""In-memory request rate limiting for the API."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request

__all__ = [
    "API_RATE_LIMIT",
    "REFRESH_RATE_LIMIT",
    "RATE_LIMIT_WINDOW_SECONDS",
    "RateLimiter",
    "enforce_api_rate_limit",
    "enforce_refresh_rate_limit",
]

RATE_LIMIT_WINDOW_SECONDS = 15 * 60
API_RATE_LIMIT = 100
REFRESH_RATE_LIMIT = 5


class RateLimiter:
    """Sliding-window limiter keyed by client address."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        *,
        message: str = "Too many requests, please try again later.",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)

    def hit(self, key: str) -> bool:
        """Record a request for ``key``; return ``False`` when over the limit."""

        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def _sweep(self, now: float) -> None:
        # Drop clients whose newest hit has left the window.
        expired = [
            key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds
        ]
        for key in expired:
            del self._hits[key]
        self._last_sweep = now

    def check(self, request: Request) -> None:
        key = request.client.host if request.client else "anonymous"
        if not self.hit(key):
            raise HTTPException(
                status_code=429,
                detail=self.message,
                headers={"Retry-After": str(int(self.window_seconds))},
            )


async def enforce_api_rate_limit(request: Request) -> None:
    request.app.state.api_limiter.check(request)


async def enforce_refresh_rate_limit(request: Request) -> None:
    request.app.state.refresh_limiter.check(request)
