"""Optimistic update models."""

from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
import uuid


class UpdateStatus(str, Enum):
    """Lifecycle status of an optimistic update."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"


TERMINAL_STATUSES = frozenset({UpdateStatus.CONFIRMED, UpdateStatus.ROLLED_BACK})


class OptimisticUpdate(BaseModel):
    """One tracked mutation attempt."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique update ID")
    previous_value: Any = Field(description="Value before the optimistic transform")
    optimistic_value: Any = Field(description="Value right after the optimistic transform")
    status: UpdateStatus = Field(default=UpdateStatus.PENDING, description="Current status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Creation time"
    )
    retry_count: int = Field(default=0, ge=0, description="Number of retries attempted")
    error: Optional[BaseException] = Field(default=None, description="Last failure, if any")
    version: int = Field(default=0, description="Value version this update last wrote")
    base_version: int = Field(default=0, description="Value version current before this update")

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can leave this status."""
        return self.status in TERMINAL_STATUSES


class OptimisticResult(BaseModel):
    """Outcome of an ``apply_update`` call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    update_id: str
    value: Any
    status: UpdateStatus
    error: Optional[BaseException] = None
    retry: Callable[[], Awaitable[None]]
    rollback: Callable[[], None]

    @property
    def pending(self) -> bool:
        return self.status == UpdateStatus.PENDING


class ApplyOutcome(BaseModel):
    """Result of the stateless ``apply_optimistic`` helper."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    value: Any
    confirmed: bool
    error: Optional[BaseException] = None
