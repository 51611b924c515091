"""Retry logic with exponential backoff for transient Notion API failures.

This module provides retry functionality for rate limit (429), server (5xx)
and connection failures. It implements exponential backoff with jitter up to
a fixed attempt ceiling, honours the server's Retry-After hint on 429
responses, and fails fast for every other error.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from .errors import RateLimited, TransientNetworkFailure

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryPolicy:
    """Backoff configuration for transient failures.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry, doubled for each further retry
        max_delay: Upper bound for the computed (non Retry-After) delay
        jitter: Maximum random seconds added to a computed delay
        sleep: Sleep function, injectable for tests
        on_retry: Optional callback invoked once per retry with the error
    """
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    on_retry: Optional[Callable[[Exception], None]] = field(default=None, repr=False)

    def backoff(self, retry_num: int) -> float:
        """Compute the delay before retry number ``retry_num`` (0-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** retry_num))
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def delay_for(self, error: Exception, retry_num: int) -> float:
        """Pick the delay for an error; a 429 Retry-After hint takes precedence."""
        if isinstance(error, RateLimited) and error.retry_after is not None:
            return max(0.0, float(error.retry_after))
        return self.backoff(retry_num)


def retry_on_transient(func: Callable[..., T], *args, policy: Optional[RetryPolicy] = None, **kwargs) -> T:
    """Call ``func`` retrying transient failures with exponential backoff.

    Args:
        func: The function to execute with retry logic
        *args: Positional arguments to pass to the function
        policy: RetryPolicy to use (defaults to RetryPolicy())
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function

    Raises:
        RateLimited: If rate limiting persists past the attempt ceiling
        TransientNetworkFailure: If transient failures persist past the attempt ceiling
        Other exceptions: Passed through immediately without retry

    Example:
        >>> result = retry_on_transient(api._send, "GET", "/pages/abc")
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_attempts)

    for retry_num in range(attempts):
        try:
            return func(*args, **kwargs)
        except (RateLimited, TransientNetworkFailure) as e:
            if retry_num >= attempts - 1:
                logger.error(f"Transient failure persisted after {attempts} attempts, giving up: {e}")
                raise

            wait_time = policy.delay_for(e, retry_num)
            logger.info(
                f"{type(e).__name__}: retrying in {wait_time:.2f}s "
                f"(attempt {retry_num + 2}/{attempts})"
            )
            if policy.on_retry is not None:
                policy.on_retry(e)
            policy.sleep(wait_time)

    # Unreachable: the last attempt either returns or raises
    raise TransientNetworkFailure(f"Notion API failure (after {attempts} attempts)")


def is_transient_status(status: int) -> bool:
    """Return True for HTTP statuses that are worth retrying."""
    return status == 429 or 500 <= status <= 599
