"""
rate_limit.py — Per-client sliding-window request limiting
==========================================================
Every API request is counted against the caller's address. A client may
make at most ``max_requests`` requests in any trailing ``window_ms``
window; further requests are rejected with a 429 and a ``retryAfter``
hint until the oldest request in the window ages out.

The limiter is a plain object created once per process and stored on
``app.state.rate_limiter``. It is a single-node approximation: counters
are not shared between worker processes.
"""
from __future__ import annotations

import logging
import math
import time
from threading import Lock
from typing import Callable, Dict, List

from fastapi import Request
from slowapi.util import get_remote_address

from .errors import RateLimited

log = logging.getLogger("facesmash.rate_limit")


def _now_ms() -> float:
    return time.time() * 1000


class SlidingWindowRateLimiter:
    """Tracks request timestamps per client key within a trailing window."""

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        if window_ms <= 0 or max_requests <= 0:
            raise ValueError("window_ms and max_requests must be positive")
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        # Sync routes run on a thread pool, so the map needs a guard
        self._lock = Lock()

    def acquire(self, client_key: str) -> None:
        """Record one request for ``client_key`` or raise RateLimited.

        A rejected request is not recorded, so hammering the endpoint
        while limited does not push the reset time further out.
        """
        now = self._clock()
        window_start = now - self.window_ms

        with self._lock:
            self._evict(window_start)
            recent = self._requests.get(client_key, [])

            if len(recent) >= self.max_requests:
                retry_after = math.ceil((recent[0] + self.window_ms - now) / 1000)
                log.warning(
                    "Rate limit exceeded for %s (%d requests in %d ms)",
                    client_key, len(recent), self.window_ms,
                )
                raise RateLimited(
                    retry_after=retry_after,
                    max_requests=self.max_requests,
                    window_ms=self.window_ms,
                )

            recent.append(now)
            self._requests[client_key] = recent

    def _evict(self, window_start: float) -> None:
        """Drop expired timestamps everywhere; forget clients with none left."""
        for key in list(self._requests):
            alive = [ts for ts in self._requests[key] if ts > window_start]
            if alive:
                self._requests[key] = alive
            else:
                del self._requests[key]

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()

    @property
    def active_clients(self) -> int:
        with self._lock:
            return len(self._requests)


def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency: count the request against the caller's address."""
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    limiter.acquire(get_remote_address(request))
