"""In-memory sliding-window limiter for submission endpoints."""

from __future__ import annotations

import asyncio
import os
import time
from collections import deque
from typing import Deque, Dict, Optional


class RateLimitExceeded(Exception):
    def __init__(self, key: str, retry_after: float) -> None:
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {key}")


class RateLimiter:
    """Allow at most ``limit`` hits per key within ``window_seconds``."""

    def __init__(self, *, limit: int, window_seconds: float) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window = window_seconds
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = time.monotonic()

    async def _acquire(self, key: str) -> Optional[float]:
        """Record a hit and return None, or return seconds until a slot frees up."""
        now = time.monotonic()
        cutoff = now - self.window

        async with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                return max(0.0, hits[0] + self.window - now)

            hits.append(now)
            return None

    def _sweep(self, cutoff: float) -> None:
        """Forget keys whose every hit has left the window."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    async def check(self, key: str) -> None:
        retry_after = await self._acquire(key)
        if retry_after is not None:
            raise RateLimitExceeded(key, retry_after)


_submission_limiter: Optional[RateLimiter] = None
_submission_limiter_loaded = False


def get_submission_rate_limiter() -> Optional[RateLimiter]:
    """Shared limiter for MCQ/DSA submissions, or None when disabled."""

    global _submission_limiter, _submission_limiter_loaded
    if _submission_limiter_loaded:
        return _submission_limiter

    try:
        limit = int(os.getenv("SUBMISSION_RATE_LIMIT", "0"))
        window = float(os.getenv("SUBMISSION_RATE_WINDOW", "60"))
    except ValueError:
        limit = 0
        window = 60.0

    _submission_limiter = RateLimiter(limit=limit, window_seconds=window) if limit > 0 else None
    _submission_limiter_loaded = True
    return _submission_limiter


__all__ = ["RateLimitExceeded", "RateLimiter", "get_submission_rate_limiter"]
