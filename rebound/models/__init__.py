"""Data models for rebound."""

from rebound.models.update import (
    UpdateStatus,
    OptimisticUpdate,
    OptimisticResult,
    ApplyOutcome,
)
from rebound.models.recovery import (
    ErrorCategory,
    ErrorSeverity,
    RecoveryStrategy,
    RecoveryState,
    ErrorClassification,
    RecoveryProgress,
    CircuitBreakerState,
)
from rebound.models.config import OptimisticConfig, RecoveryConfig, ReboundConfig

__all__ = [
    "UpdateStatus",
    "OptimisticUpdate",
    "OptimisticResult",
    "ApplyOutcome",
    "ErrorCategory",
    "ErrorSeverity",
    "RecoveryStrategy",
    "RecoveryState",
    "ErrorClassification",
    "RecoveryProgress",
    "CircuitBreakerState",
    "OptimisticConfig",
    "RecoveryConfig",
    "ReboundConfig",
]
