"""Consecutive-failure circuit breaker."""

import logging
import time
from typing import Callable, Optional

from rebound.models.recovery import CircuitBreakerState

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Tracks consecutive failures and suspends calls once a threshold is hit.

    The breaker opens when ``failures >= threshold``. After ``timeout`` seconds
    since the last failure it becomes half-open: :meth:`allow_request` closes it
    and reports a trial, and the caller is expected to make exactly one attempt.
    The failure count is left untouched, so a failed trial re-opens it at once.
    """

    def __init__(
        self,
        threshold: int = 5,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            threshold: Consecutive failures that open the breaker
            timeout: Cooldown in seconds before a trial attempt is allowed
            clock: Monotonic time source
        """
        self.threshold = threshold
        self.timeout = timeout
        self.clock = clock
        self.is_open = False
        self.failures = 0
        self.last_failure: Optional[float] = None

    def remaining_cooldown(self) -> float:
        """Seconds until an open breaker becomes half-open (0 when closed)."""
        if not self.is_open:
            return 0.0
        elapsed = self.clock() - (self.last_failure or 0.0)
        return max(0.0, self.timeout - elapsed)

    def allow_request(self) -> tuple[bool, bool]:
        """Check whether an attempt may be made.

        Returns:
            Tuple of (allowed, is_trial). ``is_trial`` is True when an open
            breaker has cooled down and is letting one attempt through.
        """
        if not self.is_open:
            return (True, False)

        if self.remaining_cooldown() > 0:
            return (False, False)

        logger.info("Circuit breaker half-open, allowing a trial attempt")
        self.is_open = False
        return (True, True)

    def record_success(self) -> None:
        """Close the breaker and clear the failure count."""
        if self.failures or self.is_open:
            logger.debug(f"Circuit breaker reset after {self.failures} failures")
        self.failures = 0
        self.is_open = False

    def record_failure(self) -> bool:
        """Count a failure.

        Returns:
            True if the breaker is open after this failure
        """
        self.failures += 1
        self.last_failure = self.clock()

        if self.failures >= self.threshold:
            if not self.is_open:
                logger.warning(
                    f"Circuit breaker opened after {self.failures} consecutive failures"
                )
            self.is_open = True

        return self.is_open

    def trip(self) -> None:
        """Open the breaker now, restarting the cooldown."""
        self.last_failure = self.clock()
        self.is_open = True

    def reset(self) -> None:
        """Unconditionally close the breaker and forget past failures."""
        self.is_open = False
        self.failures = 0
        self.last_failure = None

    def get_state(self) -> CircuitBreakerState:
        """Snapshot including the live ``reset_in`` countdown."""
        return CircuitBreakerState(
            is_open=self.is_open,
            failures=self.failures,
            last_failure=self.last_failure,
            reset_in=self.remaining_cooldown(),
        )
