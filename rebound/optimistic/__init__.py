"""Optimistic update management."""

from .manager import OptimisticUpdateManager, create_optimistic_manager
from .list_manager import OptimisticListManager, create_optimistic_list_manager
from .conflict import (
    apply_optimistic,
    client_wins_resolver,
    last_write_wins_resolver,
    merge_with_conflict_resolution,
    server_wins_resolver,
)

__all__ = [
    "OptimisticUpdateManager",
    "create_optimistic_manager",
    "OptimisticListManager",
    "create_optimistic_list_manager",
    "apply_optimistic",
    "client_wins_resolver",
    "last_write_wins_resolver",
    "merge_with_conflict_resolution",
    "server_wins_resolver",
]
