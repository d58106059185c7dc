# src/app/services/rate_limiter.py
"""
Per-identity request throttle guarding every external-fetch entry point.

The in-memory implementation keeps its windows in a process-local dict, so
limits are only enforced per process. Deployments with several instances
need a shared-store implementation of `RateLimiter`.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from src.app.constants import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from src.app.domain.models import RateLimitStatus, RateLimitWindow

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Abstract sliding-window limiter keyed by identity."""

    @abstractmethod
    def check(self, identity: str) -> bool:
        """Count one request; return False once the window is exhausted."""
        pass

    @abstractmethod
    def status(self, identity: str) -> RateLimitStatus:
        """Remaining requests and the time the current window resets."""
        pass

    @abstractmethod
    def reset(self, identity: str) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):
    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}

    def _expired(self, window: RateLimitWindow, now: float) -> bool:
        return now - window.window_start > self.window_seconds

    def check(self, identity: str) -> bool:
        now = self._clock()
        window = self._windows.get(identity)

        if window is None or self._expired(window, now):
            self._windows[identity] = RateLimitWindow(count=1, window_start=now)
            return True

        if window.count >= self.max_requests:
            logger.info("Rate limit hit: identity=%s, count=%d", identity, window.count)
            return False

        window.count += 1
        return True

    def status(self, identity: str) -> RateLimitStatus:
        now = self._clock()
        window = self._windows.get(identity)

        if window is None or self._expired(window, now):
            return RateLimitStatus(
                remaining=self.max_requests,
                reset_at=now + self.window_seconds,
                limit=self.max_requests,
            )

        return RateLimitStatus(
            remaining=max(0, self.max_requests - window.count),
            reset_at=window.window_start + self.window_seconds,
            limit=self.max_requests,
        )

    def reset(self, identity: str) -> None:
        self._windows.pop(identity, None)

    def cleanup_expired(self) -> int:
        """Drop windows that have elapsed. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if self._expired(window, now)]
        for key in expired:
            del self._windows[key]

        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))
        return len(expired)

    def snapshot(self) -> dict[str, RateLimitWindow]:
        return {
            key: RateLimitWindow(count=w.count, window_start=w.window_start)
            for key, w in self._windows.items()
        }
