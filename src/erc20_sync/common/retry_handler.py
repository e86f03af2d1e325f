"""
Retry Handler

Exponential backoff with jitter, shared by the transport retries (unbounded,
until shutdown) and the storage retries (bounded, then fatal).
"""

import random
from collections.abc import Callable

from erc20_sync.config.value_objects import RetryConfig


class RetryHandler:
    """Determines retry delays and exhaustion for one retry policy."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        rng: Callable[[], float] = random.random,
    ):
        self.config = config or RetryConfig()
        self._rng = rng

    def exhausted(self, attempt: int) -> bool:
        """
        Whether ``attempt`` failed attempts use up the retry budget.

        Args:
            attempt: Number of failed attempts so far (1 after the first failure)
        """
        if self.config.max_attempts is None:
            return False
        return attempt > self.config.max_attempts

    def get_retry_delay(self, attempt: int) -> float:
        """
        Calculate retry delay with exponential backoff.

        Args:
            attempt: Current retry attempt (0-indexed)

        Returns:
            Number of seconds to wait before retrying
        """
        # Exponent capped so unbounded retries cannot overflow a float
        exponent = min(attempt, 32)
        delay = self.config.base_delay * (self.config.backoff_multiplier**exponent)
        delay = min(delay, self.config.max_delay)
        if self.config.jitter:
            # Spread retries over [0.5, 1.5) of the nominal delay
            delay *= 0.5 + self._rng()
        return delay
