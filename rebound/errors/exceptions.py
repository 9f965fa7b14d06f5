"""Exceptions raised by rebound itself."""

from typing import Optional


class ReboundError(Exception):
    """Base class for errors raised by rebound."""


class CircuitOpenError(ReboundError):
    """Raised instead of attempting an operation while the breaker is open."""

    def __init__(self, reset_in: float, message: Optional[str] = None):
        self.reset_in = reset_in
        super().__init__(message or f"Circuit breaker is open (resets in {reset_in:.1f}s)")


class MutationTimeoutError(ReboundError, TimeoutError):
    """A mutation attempt did not settle within the configured timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Operation timed out after {timeout:g}s")
