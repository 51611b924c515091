"""Token bucket rate limiter shared by every worker thread.

Notion allows an average of three requests per second per integration. One
RateLimiter instance is owned by the APIWrapper and passed by reference to
all workers, so the token state is the single synchronization point for
outbound calls.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe token bucket.

    Tokens refill continuously at ``rate`` per second up to ``burst``.
    ``acquire()`` takes one token, sleeping (outside the lock) until one is
    available, so waiting callers never block threads that already hold
    tokens.

    Example:
        >>> limiter = RateLimiter(rate=3.0)
        >>> limiter.acquire()
    """

    def __init__(
        self,
        rate: float,
        burst: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the limiter.

        Args:
            rate: Tokens added per second (must be positive)
            burst: Bucket capacity; defaults to max(1, int(rate))
            clock: Monotonic clock, injectable for tests
            sleep: Sleep function, injectable for tests

        Raises:
            ValueError: If rate or burst is not positive
        """
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        capacity = burst if burst is not None else max(1, int(rate))
        if capacity <= 0:
            raise ValueError(f"burst must be positive, got {capacity}")

        self.rate = float(rate)
        self.capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = self.capacity
        self._updated = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> float:
        """Take a token if one is available.

        Returns:
            0.0 if a token was taken, otherwise the seconds to wait before retrying
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self.rate

    def acquire(self) -> None:
        """Block until a token is available and take it."""
        while True:
            wait = self.try_acquire()
            if wait <= 0.0:
                return
            logger.debug(f"Rate limiter empty, waiting {wait:.3f}s")
            self._sleep(wait)
