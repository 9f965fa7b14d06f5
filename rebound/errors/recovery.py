"""Recovery engine: classified retries behind a circuit breaker."""

import asyncio
import logging
import math
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from rebound.models.config import RecoveryConfig
from rebound.models.recovery import (
    CircuitBreakerState,
    ErrorClassification,
    RecoveryProgress,
    RecoveryState,
)
from .circuit_breaker import CircuitBreaker
from .classifier import ErrorClassifier, get_user_friendly_message
from .exceptions import CircuitOpenError
from .strategies import ExponentialBackoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[RecoveryProgress], None]


class RecoveryEngine:
    """Execute fallible async operations with classified retries.

    Each engine owns its circuit breaker. Call sites that must share breaker
    state have to share the engine instance.
    """

    def __init__(
        self,
        config: Union[RecoveryConfig, dict, None] = None,
        *,
        retry_on: Optional[Callable[[BaseException], bool]] = None,
        classifier: Optional[Callable[[BaseException], ErrorClassification]] = None,
        on_attempt: Optional[Callable[[int, BaseException], None]] = None,
        on_success: Optional[Callable[[], None]] = None,
        on_failure: Optional[Callable[[BaseException, int], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize recovery engine.

        Args:
            config: Engine configuration (model or dict of its fields)
            retry_on: Predicate that must accept an error for it to be retried
            classifier: Replacement for ``ErrorClassifier.classify``
            on_attempt: Called with (attempt, error) after each failed attempt
            on_success: Called once an attempt succeeds
            on_failure: Called with (last_error, attempts) when giving up
            clock: Monotonic time source for the circuit breaker
        """
        if isinstance(config, dict):
            config = RecoveryConfig(**config)
        self.config = config or RecoveryConfig()
        self.retry_on = retry_on or (lambda error: True)
        self.classifier = classifier or ErrorClassifier.classify
        self.on_attempt = on_attempt
        self.on_success = on_success
        self.on_failure = on_failure
        self.backoff = ExponentialBackoff(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.base_delay,
            multiplier=self.config.backoff_multiplier,
            max_delay=self.config.max_delay,
            jitter=self.config.jitter,
        )
        self.circuit_breaker = CircuitBreaker(
            threshold=self.config.circuit_breaker_threshold,
            timeout=self.config.circuit_breaker_timeout,
            clock=clock,
        )

    async def execute(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        on_progress: Optional[ProgressCallback] = None,
        abort_event: Optional[asyncio.Event] = None,
        operation_name: str = "operation",
        **kwargs: Any,
    ) -> T:
        """Execute an operation with automatic recovery.

        Args:
            operation: Async function to execute
            *args: Positional arguments for operation
            on_progress: Observer receiving RecoveryProgress records
            abort_event: When set, no further attempts are scheduled
            operation_name: Name of operation for logging
            **kwargs: Keyword arguments for operation

        Returns:
            Result from operation

        Raises:
            CircuitOpenError: If the breaker is open and cooling down
            Exception: The last error once recovery gives up
        """
        max_attempts = self.config.max_attempts
        trial = False

        if self.config.respect_circuit_breaker:
            allowed, trial = self.circuit_breaker.allow_request()
            if not allowed:
                reset_in = self.circuit_breaker.remaining_cooldown()
                logger.warning(
                    f"✗ {operation_name} refused, circuit breaker open for {reset_in:.1f}s"
                )
                self._report(
                    on_progress,
                    state=RecoveryState.CIRCUIT_OPEN,
                    attempt=0,
                    next_retry_in=reset_in,
                    message="Service temporarily unavailable",
                    suggestion=f"Please wait {math.ceil(reset_in)} seconds",
                )
                raise CircuitOpenError(reset_in)

        last_error: BaseException = RuntimeError("Unknown error")
        attempt = 0

        while attempt < max_attempts:
            attempt += 1

            try:
                logger.debug(f"Executing {operation_name} (attempt {attempt}/{max_attempts})")
                self._report(
                    on_progress,
                    state=RecoveryState.RECOVERING,
                    attempt=attempt,
                    percentage=attempt / max_attempts * 100,
                    message=f"Attempt {attempt} of {max_attempts}",
                    suggestion="Please wait...",
                )

                result = await operation(*args, **kwargs)

            except Exception as e:
                last_error = e
                self._call_hook(self.on_attempt, attempt, e)

                classification = self.classifier(e)
                logger.debug(
                    f"Error in {operation_name}: {classification.category.value} - {str(e)[:100]}"
                )

                if not classification.recoverable or not self.retry_on(e):
                    logger.debug(f"Not retrying {operation_name}: {classification.strategy.value}")
                    if trial and self.config.respect_circuit_breaker:
                        logger.warning(f"Trial attempt for {operation_name} failed, circuit re-opened")
                        self.circuit_breaker.trip()
                    break

                opened = self.circuit_breaker.record_failure()
                if trial and opened and self.config.respect_circuit_breaker:
                    logger.warning(f"Trial attempt for {operation_name} failed, circuit re-opened")
                    break

                if not self.backoff.should_retry(attempt):
                    break

                if abort_event is not None and abort_event.is_set():
                    logger.info(f"Recovery of {operation_name} aborted by caller")
                    break

                delay = self.calculate_delay(attempt, classification.suggested_retry_delay)
                message, suggestion = get_user_friendly_message(classification)
                self._report(
                    on_progress,
                    state=RecoveryState.RECOVERING,
                    attempt=attempt,
                    percentage=attempt / max_attempts * 100,
                    next_retry_in=delay,
                    message=message,
                    suggestion=f"{suggestion} Retrying in {math.ceil(delay)}s...",
                )

                logger.info(f"Retrying {operation_name} in {delay:.2f}s (attempt {attempt + 1}/{max_attempts})")
                if delay > 0:
                    await asyncio.sleep(delay)

                if abort_event is not None and abort_event.is_set():
                    logger.info(f"Recovery of {operation_name} aborted by caller")
                    break

            else:
                self.circuit_breaker.record_success()
                self._call_hook(self.on_success)

                if attempt > 1:
                    logger.info(f"✓ {operation_name} succeeded after {attempt} attempts")

                self._report(
                    on_progress,
                    state=RecoveryState.RECOVERED,
                    attempt=attempt,
                    percentage=100,
                    message="Success",
                )
                return result

        self._call_hook(self.on_failure, last_error, attempt)

        message, suggestion = get_user_friendly_message(self.classifier(last_error))
        logger.warning(f"✗ {operation_name} failed after {attempt} attempts: {str(last_error)[:100]}")
        self._report(
            on_progress,
            state=RecoveryState.FAILED,
            attempt=attempt,
            percentage=100,
            message=message,
            suggestion=suggestion,
        )

        raise last_error

    def calculate_delay(
        self, attempt: int, suggested_delay: float = 0.0, jitter: Optional[bool] = None
    ) -> float:
        """Delay before the attempt following ``attempt``.

        ``max(base_delay * multiplier ** (attempt - 1), suggested_delay)``,
        capped at ``max_delay``, with jitter when enabled. Passing ``jitter``
        overrides the configured setting for this call.
        """
        return self.backoff.get_delay(attempt, suggested_delay, jitter=jitter)

    def get_circuit_breaker_state(self) -> CircuitBreakerState:
        """Get circuit breaker state with the live ``reset_in`` countdown."""
        return self.circuit_breaker.get_state()

    def reset_circuit_breaker(self) -> None:
        """Manually close the circuit breaker."""
        self.circuit_breaker.reset()

    def _report(self, on_progress: Optional[ProgressCallback], **fields: Any) -> None:
        if on_progress is None:
            return
        fields.setdefault("max_attempts", self.config.max_attempts)
        try:
            on_progress(RecoveryProgress(**fields))
        except Exception:
            logger.exception("Progress callback raised")

    @staticmethod
    def _call_hook(hook: Optional[Callable[..., None]], *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Recovery hook raised")


_default_engine: Optional[RecoveryEngine] = None


def get_default_engine() -> RecoveryEngine:
    """Return the process-wide engine, creating it on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = RecoveryEngine()
    return _default_engine


def reset_default_engine() -> None:
    """Drop the process-wide engine so the next use starts fresh."""
    global _default_engine
    _default_engine = None


def create_recovery_engine(
    config: Union[RecoveryConfig, dict, None] = None, **kwargs: Any
) -> RecoveryEngine:
    """Create a recovery engine."""
    return RecoveryEngine(config, **kwargs)


async def execute_with_recovery(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    config: Union[RecoveryConfig, dict, None] = None,
    **kwargs: Any,
) -> T:
    """Convenience function for a one-off execution with its own engine.

    Args:
        operation: Async function to execute
        *args: Positional arguments
        config: Engine configuration
        **kwargs: Keyword arguments (``on_progress`` and friends are forwarded)

    Returns:
        Result from operation
    """
    return await RecoveryEngine(config).execute(operation, *args, **kwargs)
