"""Per-client fixed-window request limiter."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Allow ``max_requests`` per ``window_seconds`` for each client key.

    A window opens on the first request from a key and resets once the
    clock passes ``reset_at``. Rejected requests do not extend the window.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}

    def allow(self, key: str) -> bool:
        """Record a request for ``key``; False when the key is over its limit."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                self._prune(now)
                return True

            if window.count >= self.max_requests:
                logger.warning(f"Rate limit exceeded for client {key}")
                return False

            window.count += 1
            return True

    def _prune(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
