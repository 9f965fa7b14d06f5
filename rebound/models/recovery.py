"""Recovery and classification models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ErrorCategory(str, Enum):
    """Categories assigned by the error classifier."""

    NETWORK = "network"  # Connection issues, timeouts, offline
    RATE_LIMITED = "rate-limited"  # 429 / too many requests
    AUTH = "auth"  # 401 / 403
    VALIDATION = "validation"  # 400 / malformed input
    SERVER = "server"  # 5xx
    UNKNOWN = "unknown"  # Unclassified errors


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RecoveryStrategy(str, Enum):
    """Recommended way to recover from an error."""

    RETRY = "retry"
    REFRESH = "refresh"
    FALLBACK = "fallback"
    REDIRECT = "redirect"
    MANUAL = "manual"
    NONE = "none"


class RecoveryState(str, Enum):
    """State reported to progress observers."""

    IDLE = "idle"
    RECOVERING = "recovering"
    RECOVERED = "recovered"
    FAILED = "failed"
    CIRCUIT_OPEN = "circuit-open"


class ErrorClassification(BaseModel):
    """Classification of a single error."""

    category: ErrorCategory = Field(description="Error category")
    severity: ErrorSeverity = Field(description="Error severity")
    recoverable: bool = Field(description="Whether retrying may help")
    strategy: RecoveryStrategy = Field(description="Recommended strategy")
    is_network_error: bool = False
    is_rate_limited: bool = False
    is_auth_error: bool = False
    is_validation_error: bool = False
    suggested_retry_delay: float = Field(default=0.0, ge=0, description="Suggested delay in seconds")


class RecoveryProgress(BaseModel):
    """Progress record passed to ``on_progress`` observers."""

    state: RecoveryState
    attempt: int = 0
    max_attempts: int = 0
    percentage: float = Field(default=0.0, description="Progress percentage (0-100)")
    next_retry_in: float = Field(default=0.0, description="Seconds until the next attempt")
    message: str = ""
    suggestion: str = ""


class CircuitBreakerState(BaseModel):
    """Snapshot of a circuit breaker."""

    is_open: bool = False
    failures: int = Field(default=0, ge=0, description="Consecutive failures since last success")
    last_failure: Optional[float] = Field(default=None, description="Clock time of the last failure")
    reset_in: float = Field(default=0.0, ge=0, description="Seconds until half-open")
