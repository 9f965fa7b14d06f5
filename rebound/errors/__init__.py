"""Error handling and recovery module."""

from .exceptions import ReboundError, CircuitOpenError, MutationTimeoutError
from .classifier import ErrorClassifier, get_user_friendly_message
from .strategies import RetryStrategy, ExponentialBackoff
from .circuit_breaker import CircuitBreaker
from .recovery import (
    RecoveryEngine,
    create_recovery_engine,
    execute_with_recovery,
    get_default_engine,
    reset_default_engine,
)

__all__ = [
    "ReboundError",
    "CircuitOpenError",
    "MutationTimeoutError",
    "ErrorClassifier",
    "get_user_friendly_message",
    "RetryStrategy",
    "ExponentialBackoff",
    "CircuitBreaker",
    "RecoveryEngine",
    "create_recovery_engine",
    "execute_with_recovery",
    "get_default_engine",
    "reset_default_engine",
]
