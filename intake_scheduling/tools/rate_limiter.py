"""
Request rate limiting behind a swappable ``allow(key)`` interface.

The in-process fixed-window limiter is the default; a shared-store
implementation (Redis, a database table) only needs the same ``allow``
method to be dropped into a multi-instance deployment.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    """Decides whether a request identified by ``key`` may proceed."""

    def allow(self, key: str) -> bool: ...


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Allows ``max_requests`` per key per fixed window.

    A key's window opens on its first request and lasts
    ``window_seconds``. The count resets only once the clock has passed
    the window end, not continuously. Closed windows are swept from
    ``allow`` every ``cleanup_interval`` seconds (default: one window)
    so the table only holds recently active keys.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: Optional[float] = None,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = window_seconds if cleanup_interval is None else cleanup_interval
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_cleanup >= self.cleanup_interval:
                self._purge_locked(now)
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True
            if window.count >= self.max_requests:
                logger.info("Rate limit exceeded for key %s", key)
                return False
            window.count += 1
            return True

    def purge_expired(self) -> int:
        """Drop windows that have already closed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        self._last_cleanup = now
        if expired:
            logger.debug("Cleaned up %d expired rate limit window(s)", len(expired))
        return len(expired)

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        """Forget all windows. Used by test fixtures for isolation."""
        with self._lock:
            self._windows.clear()
