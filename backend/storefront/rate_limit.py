"""
Rate limiting for auth endpoints.

Uses an in-memory sliding-window counter keyed by client IP.  The hit map is
shared across worker threads and guarded by a lock.  Keys with no hits left
in the window are swept once per window, so the map only holds recently
active clients.
"""

import threading
import time
from typing import Callable, Dict, List

from fastapi import HTTPException, Request


class RateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(
        self,
        max_requests: int = 10,
        window_secs: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_secs = window_secs
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def check(self, key: str) -> None:
        """Raise HTTPException 429 if *key* has exceeded the rate limit."""
        now = self._clock()
        cutoff = now - self.window_secs

        with self._lock:
            if now - self._last_sweep >= self.window_secs:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = [t for t in self._hits.get(key, ()) if t > cutoff]
            if len(hits) >= self.max_requests:
                self._hits[key] = hits
                raise HTTPException(
                    status_code=429,
                    detail=f"Too many requests. Limit: {self.max_requests} per {self.window_secs}s.",
                )
            hits.append(now)
            self._hits[key] = hits

    def _sweep(self, cutoff: float) -> None:
        # Caller holds the lock.
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in stale:
            del self._hits[k]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()


# ── Pre-configured limiters ──────────────────────────────────────────────────

# Login: 10 attempts per 60 s per IP
login_limiter = RateLimiter(max_requests=10, window_secs=60)

# Register: 5 accounts per 60 s per IP
register_limiter = RateLimiter(max_requests=5, window_secs=60)


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For from reverse proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
