"""Configuration models."""

from typing import Optional
from pydantic import BaseModel, Field


class OptimisticConfig(BaseModel):
    """Optimistic update manager configuration."""

    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts")
    retry_delay: float = Field(default=1.0, ge=0, description="Base retry delay in seconds")
    retry_backoff: float = Field(default=2.0, ge=1, description="Retry backoff multiplier")
    auto_retry: bool = Field(default=True, description="Retry automatically on failure")
    timeout: Optional[float] = Field(
        default=30.0, ge=0, description="Per-attempt timeout in seconds (None disables)"
    )
    keep_history: bool = Field(default=True, description="Keep confirmed values for undo")
    max_history_size: int = Field(default=50, ge=0, description="Maximum history size")
    rollback_on_failure: bool = Field(
        default=True, description="Roll back once retries are exhausted"
    )
    raise_on_failure: bool = Field(
        default=True, description="Raise the last error after a failure rollback"
    )
    debug: bool = Field(default=False, description="Log update transitions at info level")


class RecoveryConfig(BaseModel):
    """Recovery engine configuration."""

    max_attempts: int = Field(default=3, ge=0, description="Maximum attempts per execute call")
    base_delay: float = Field(default=1.0, ge=0, description="Base delay between attempts in seconds")
    max_delay: float = Field(default=30.0, ge=0, description="Delay cap in seconds")
    backoff_multiplier: float = Field(default=2.0, ge=1, description="Backoff multiplier")
    jitter: bool = Field(default=True, description="Apply +/-10% jitter to delays")
    respect_circuit_breaker: bool = Field(
        default=True, description="Refuse calls while the circuit breaker is open"
    )
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Consecutive failures that open the breaker"
    )
    circuit_breaker_timeout: float = Field(
        default=30.0, ge=0, description="Seconds before an open breaker allows a trial"
    )


class ReboundConfig(BaseModel):
    """Top-level rebound configuration."""

    optimistic: OptimisticConfig = Field(
        default_factory=OptimisticConfig, description="Optimistic update configuration"
    )
    recovery: RecoveryConfig = Field(
        default_factory=RecoveryConfig, description="Recovery engine configuration"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    @classmethod
    def from_yaml(cls, path: str) -> "ReboundConfig":
        """Load configuration from YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_env(cls) -> "ReboundConfig":
        """Load configuration from environment variables."""
        from dotenv import load_dotenv
        import os

        load_dotenv()

        debug = os.getenv("REBOUND_DEBUG", "false").lower() == "true"
        timeout = os.getenv("REBOUND_TIMEOUT", "30.0")

        return cls(
            optimistic=OptimisticConfig(
                max_retries=int(os.getenv("REBOUND_MAX_RETRIES", "3")),
                retry_delay=float(os.getenv("REBOUND_RETRY_DELAY", "1.0")),
                retry_backoff=float(os.getenv("REBOUND_RETRY_BACKOFF", "2.0")),
                auto_retry=os.getenv("REBOUND_AUTO_RETRY", "true").lower() == "true",
                timeout=None if timeout.lower() == "none" else float(timeout),
                max_history_size=int(os.getenv("REBOUND_MAX_HISTORY_SIZE", "50")),
                debug=debug,
            ),
            recovery=RecoveryConfig(
                max_attempts=int(os.getenv("REBOUND_MAX_ATTEMPTS", "3")),
                base_delay=float(os.getenv("REBOUND_BASE_DELAY", "1.0")),
                max_delay=float(os.getenv("REBOUND_MAX_DELAY", "30.0")),
                backoff_multiplier=float(os.getenv("REBOUND_BACKOFF_MULTIPLIER", "2.0")),
                jitter=os.getenv("REBOUND_JITTER", "true").lower() == "true",
                circuit_breaker_threshold=int(os.getenv("REBOUND_CIRCUIT_BREAKER_THRESHOLD", "5")),
                circuit_breaker_timeout=float(os.getenv("REBOUND_CIRCUIT_BREAKER_TIMEOUT", "30.0")),
            ),
            debug=debug,
        )
