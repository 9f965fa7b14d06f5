"""Retry timing strategies."""

import asyncio
import random
from abc import ABC, abstractmethod
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class RetryStrategy(ABC):
    """Base class for retry strategies."""

    def __init__(self, max_attempts: int = 3):
        """Initialize retry strategy.

        Args:
            max_attempts: Maximum number of attempts
        """
        self.max_attempts = max_attempts

    @abstractmethod
    def get_delay(self, attempt: int, suggested_delay: float = 0.0) -> float:
        """Compute the delay in seconds before the attempt after ``attempt``.

        Args:
            attempt: Attempt number that just failed (1-indexed)
            suggested_delay: Lower bound suggested by the error classification
        """

    async def wait(self, attempt: int, suggested_delay: float = 0.0) -> float:
        """Sleep for the computed delay and return it."""
        delay = self.get_delay(attempt, suggested_delay)
        if delay > 0:
            await asyncio.sleep(delay)
        return delay

    def should_retry(self, attempt: int) -> bool:
        """Check if we should retry.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            True if we should retry
        """
        return attempt < self.max_attempts


class ExponentialBackoff(RetryStrategy):
    """Exponential backoff, optionally jittered."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        max_delay: Optional[float] = None,
        jitter: bool = False,
    ):
        """Initialize exponential backoff strategy.

        Args:
            max_attempts: Maximum number of attempts
            base_delay: Delay after the first failure, in seconds
            multiplier: Growth factor per attempt
            max_delay: Cap in seconds applied before jitter (None for no cap)
            jitter: Scale the delay by a random factor in [0.9, 1.1]
        """
        super().__init__(max_attempts)
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter

    def base_delay_for(self, attempt: int) -> float:
        """Un-jittered, uncapped delay: ``base_delay * multiplier ** (attempt - 1)``."""
        return self.base_delay * (self.multiplier ** max(attempt - 1, 0))

    def get_delay(
        self, attempt: int, suggested_delay: float = 0.0, jitter: Optional[bool] = None
    ) -> float:
        """Delay after ``attempt``; ``jitter`` overrides the configured setting."""
        delay = max(self.base_delay_for(attempt), suggested_delay)

        if self.max_delay is not None:
            delay = min(delay, self.max_delay)

        if jitter is None:
            jitter = self.jitter
        if jitter:
            delay = delay + delay * 0.2 * random.random() - delay * 0.1

        logger.debug(f"Exponential backoff: {delay:.2f}s after attempt {attempt}")
        return delay
