"""Optimistic updates for ordered collections of identified items."""

import copy
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel

from rebound.models.config import OptimisticConfig
from rebound.models.update import OptimisticResult
from .conflict import structurally_equal
from .manager import MutationFn, OptimisticUpdateManager, UpdateListener


def item_id(item: Any) -> Any:
    """Identity of a list item: the ``"id"`` key of a mapping, else its ``id`` attribute."""
    if isinstance(item, Mapping):
        return item.get("id")
    return getattr(item, "id", None)


def merge_item(item: Any, updates: Mapping[str, Any]) -> Any:
    """Return a copy of ``item`` with ``updates`` applied; the original is not modified."""
    if isinstance(item, Mapping):
        return {**item, **updates}
    if isinstance(item, BaseModel):
        return item.model_copy(update=dict(updates))

    merged = copy.copy(item)
    for key, value in updates.items():
        setattr(merged, key, value)
    return merged


def _find(items: list, target_id: Any) -> Optional[Any]:
    for item in items:
        if item_id(item) == target_id:
            return item
    return None


class OptimisticListManager:
    """Specialized manager for list operations."""

    def __init__(
        self,
        initial_items: list,
        config: Union[OptimisticConfig, dict, None] = None,
        **kwargs: Any,
    ):
        self._manager = OptimisticUpdateManager(list(initial_items), config, **kwargs)

    @property
    def manager(self) -> OptimisticUpdateManager:
        """The underlying value manager."""
        return self._manager

    def get_items(self) -> list:
        return self._manager.get_value()

    async def add_item(self, item: Any, mutation: MutationFn, *args: Any, **kwargs: Any) -> OptimisticResult:
        """Optimistically append an item."""
        return await self._manager.apply_update(lambda items: [*items, item], mutation, *args, **kwargs)

    async def remove_item(self, target_id: Any, mutation: MutationFn, *args: Any, **kwargs: Any) -> OptimisticResult:
        """Optimistically remove the item with ``target_id``."""
        return await self._manager.apply_update(
            lambda items: [i for i in items if item_id(i) != target_id],
            mutation,
            *args,
            **kwargs,
        )

    async def update_item(
        self,
        target_id: Any,
        updates: Mapping[str, Any],
        mutation: MutationFn,
        *args: Any,
        **kwargs: Any,
    ) -> OptimisticResult:
        """Optimistically merge ``updates`` into the item with ``target_id``."""
        return await self._manager.apply_update(
            lambda items: [merge_item(i, updates) if item_id(i) == target_id else i for i in items],
            mutation,
            *args,
            **kwargs,
        )

    async def reorder_items(
        self,
        from_index: int,
        to_index: int,
        mutation: MutationFn,
        *args: Any,
        **kwargs: Any,
    ) -> OptimisticResult:
        """Optimistically move the item at ``from_index`` to ``to_index``.

        An out-of-range ``from_index`` leaves the order unchanged.
        """

        def move(items: list) -> list:
            result = list(items)
            if not -len(result) <= from_index < len(result):
                return result
            moved = result.pop(from_index)
            result.insert(to_index, moved)
            return result

        return await self._manager.apply_update(move, mutation, *args, **kwargs)

    def get_pending_items(self) -> list:
        """Items added by pending updates and not yet confirmed."""
        pending_items = []
        for update in self._manager.get_pending_updates():
            previous_ids = {item_id(item) for item in update.previous_value}
            pending_items.extend(
                item for item in update.optimistic_value if item_id(item) not in previous_ids
            )
        return pending_items

    def has_item_pending(self, target_id: Any) -> bool:
        """Check whether any pending update changes the item with ``target_id``."""
        for update in self._manager.get_pending_updates():
            before = _find(update.previous_value, target_id)
            after = _find(update.optimistic_value, target_id)
            if not structurally_equal(before, after):
                return True
        return False

    def subscribe(self, listener: UpdateListener) -> Callable[[], None]:
        return self._manager.subscribe(listener)

    def has_pending_updates(self) -> bool:
        return self._manager.has_pending_updates()

    def undo(self) -> Optional[list]:
        return self._manager.undo()

    def get_stats(self) -> dict[str, int]:
        return self._manager.get_stats()


def create_optimistic_list_manager(
    initial_items: list,
    config: Union[OptimisticConfig, dict, None] = None,
    **kwargs: Any,
) -> OptimisticListManager:
    """Create an optimistic list manager."""
    return OptimisticListManager(initial_items, config, **kwargs)
