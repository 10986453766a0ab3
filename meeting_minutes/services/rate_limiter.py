"""
Sliding-window rate limiting keyed by client identifier

The limiter itself is stateless apart from its settings; request
timestamps live in a window store so the in-memory store can be swapped
for a shared one (e.g. Redis) without touching call sites.
"""

import asyncio
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class WindowStore(Protocol):
    def hit(self, key: str, now: float, window: float, limit: int) -> RateDecision: ...

    def sweep(self, now: float, window: float) -> int: ...


class InMemoryWindowStore:
    """
    Per-key timestamp windows for a single process.

    Every read-modify-write happens under one lock so concurrent requests
    from the same client can never both take the last free slot.
    """

    def __init__(self):
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float, window: float, limit: int) -> RateDecision:
        with self._lock:
            timestamps = self._windows.setdefault(key, deque())
            _prune(timestamps, now, window)

            if len(timestamps) >= limit:
                retry_after = math.ceil(timestamps[0] + window - now)
                return RateDecision(
                    allowed=False,
                    retry_after=min(max(retry_after, 1), math.ceil(window)),
                )

            timestamps.append(now)
            return RateDecision(allowed=True)

    def sweep(self, now: float, window: float) -> int:
        """Drop keys whose windows have fully expired; returns how many."""
        with self._lock:
            expired = []
            for key, timestamps in self._windows.items():
                _prune(timestamps, now, window)
                if not timestamps:
                    expired.append(key)
            for key in expired:
                del self._windows[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def count(self, key: str) -> int:
        with self._lock:
            return len(self._windows.get(key, ()))


def _prune(timestamps: Deque[float], now: float, window: float):
    while timestamps and now - timestamps[0] >= window:
        timestamps.popleft()


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        store: Optional[WindowStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store if store is not None else InMemoryWindowStore()
        self.clock = clock

    def admit(self, client_id: str, now: Optional[float] = None) -> RateDecision:
        """
        Record a request from `client_id` if it fits in the window.

        Rejected requests are not recorded, so a client hammering the
        endpoint is not locked out longer than the window.
        """
        if now is None:
            now = self.clock()
        decision = self.store.hit(client_id, now, self.window_seconds, self.max_requests)
        if not decision.allowed:
            logger.info("rate_limited", client_id=client_id, retry_after=decision.retry_after)
        return decision

    def sweep(self, now: Optional[float] = None) -> int:
        if now is None:
            now = self.clock()
        return self.store.sweep(now, self.window_seconds)

    async def run_sweeper(self, interval: Optional[float] = None):
        """Background loop pruning idle clients; cancel the task to stop it."""
        interval = interval or self.window_seconds
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.debug("rate_limit_sweep", removed=removed)
