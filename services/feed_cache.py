"""Single-slot TTL cache for the parsed member feed."""

import logging
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeedCache(Generic[T]):
    """
    Hold one loaded value for ``ttl_seconds``.

    The slot is global rather than per-key: the first call after start-up
    or expiry pays the full load. Failed loads are never cached.

    The lock is held while ``loader`` runs, so concurrent callers wait for
    one fetch instead of issuing their own. A slow feed (timeout times
    attempts, plus backoff) therefore stalls every waiting caller for up
    to that long.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._expires_at: float = 0.0

    def get_or_load(self, loader: Callable[[], T]) -> T:
        """Return the cached value while fresh, otherwise call ``loader`` and store its result."""
        with self._lock:
            now = self._clock()
            if self._value is not None and now < self._expires_at:
                logger.debug("Feed cache hit")
                return self._value

            logger.debug("Feed cache miss, loading")
            value = loader()
            self._value = value
            self._expires_at = now + self.ttl_seconds
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._expires_at = 0.0
