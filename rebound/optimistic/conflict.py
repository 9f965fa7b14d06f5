"""Conflict resolution between local optimistic values and server values."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel

from rebound.models.update import ApplyOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConflictResolver = Callable[[Any, Any, Any], Any]


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def serialize(value: Any) -> str:
    """Stable JSON serialization used for structural comparison."""
    return json.dumps(_to_jsonable(value), sort_keys=True, default=str)


def structurally_equal(a: Any, b: Any) -> bool:
    """Compare two values by their serialized form rather than identity."""
    return serialize(a) == serialize(b)


def merge_with_conflict_resolution(
    local_value: Any,
    server_value: Any,
    base_value: Any,
    resolver: ConflictResolver,
) -> Any:
    """Merge server and local values, calling the resolver only on a real conflict.

    Args:
        local_value: Value produced locally (optimistic)
        server_value: Value returned by the server
        base_value: Value both sides started from
        resolver: Called with (local, server, base) when both sides changed

    Returns:
        The merged value
    """
    local_changed = not structurally_equal(local_value, base_value)
    server_changed = not structurally_equal(server_value, base_value)

    if not local_changed:
        return server_value

    if not server_changed:
        return local_value

    logger.debug("Local and server values both changed, resolving conflict")
    return resolver(local_value, server_value, base_value)


def server_wins_resolver(local_value: Any, server_value: Any, base_value: Any) -> Any:
    """Default conflict resolver."""
    return server_value


def client_wins_resolver(local_value: Any, server_value: Any, base_value: Any) -> Any:
    return local_value


def _updated_at(value: Any) -> float:
    if isinstance(value, dict):
        raw = value.get("updated_at")
    else:
        raw = getattr(value, "updated_at", None)

    if raw is None:
        return 0.0
    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return raw.timestamp()
    if isinstance(raw, (int, float)):
        return float(raw)
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def last_write_wins_resolver(local_value: Any, server_value: Any, base_value: Any) -> Any:
    """Pick whichever side has the later ``updated_at``; ties go to the server.

    ``updated_at`` may be a mapping key or an attribute holding a number,
    a datetime or an ISO-8601 string. A missing or unparseable stamp counts as 0.
    """
    if _updated_at(local_value) > _updated_at(server_value):
        return local_value
    return server_value


async def apply_optimistic(
    current_value: T,
    updater: Callable[[T], T],
    mutation: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> ApplyOutcome:
    """Run a one-shot optimistic update without a manager.

    The updater's result is discarded; the outcome is either the server value
    or ``current_value`` again on failure.
    """
    updater(current_value)

    try:
        server_value = await mutation(*args, **kwargs)
    except Exception as e:
        logger.debug(f"One-shot optimistic update failed: {e}")
        return ApplyOutcome(value=current_value, confirmed=False, error=e)

    return ApplyOutcome(value=server_value, confirmed=True, error=None)
