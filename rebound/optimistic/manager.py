"""Optimistic update manager with rollback, retry and undo."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from rebound.errors.classifier import ErrorClassifier
from rebound.errors.exceptions import MutationTimeoutError
from rebound.errors.recovery import RecoveryEngine
from rebound.errors.strategies import ExponentialBackoff
from rebound.models.config import OptimisticConfig
from rebound.models.recovery import ErrorClassification
from rebound.models.update import OptimisticResult, OptimisticUpdate, UpdateStatus
from .conflict import ConflictResolver, merge_with_conflict_resolution

logger = logging.getLogger(__name__)

MutationFn = Callable[..., Awaitable[Any]]
Updater = Callable[[Any], Any]
UpdateListener = Callable[[OptimisticUpdate], None]


class OptimisticUpdateManager:
    """Manages optimistic updates of a single value.

    Updates are applied to the current value synchronously and in call order.
    Each one remembers the value it replaced, so overlapping updates unwind
    like a stack. Every write to the current value gets a fresh version; an
    update may only write the value again (confirm or roll back) while the
    current version is the one it wrote. Results arriving for an update that
    has been overtaken are recorded but do not touch the current value.
    """

    def __init__(
        self,
        initial_value: Any,
        config: Union[OptimisticConfig, dict, None] = None,
        *,
        recovery_engine: Optional[RecoveryEngine] = None,
        classifier: Optional[Callable[[BaseException], ErrorClassification]] = None,
        conflict_resolver: Optional[ConflictResolver] = None,
    ):
        """Initialize the manager.

        Args:
            initial_value: Starting (confirmed) value
            config: Manager configuration (model or dict of its fields)
            recovery_engine: Engine that runs every mutation attempt; when set
                the engine owns retries and the manager does not retry on its own
            classifier: Replacement for ``ErrorClassifier.classify``
            conflict_resolver: Merges the optimistic and server values on confirm
        """
        if isinstance(config, dict):
            config = OptimisticConfig(**config)
        self.config = config or OptimisticConfig()
        self.recovery_engine = recovery_engine
        self.classifier = classifier or ErrorClassifier.classify
        self.conflict_resolver = conflict_resolver

        self._current_value = initial_value
        self._version = 0
        self._version_counter = 0
        self._updates: dict[str, OptimisticUpdate] = {}
        self._history: list[dict[str, Any]] = []
        self._listeners: list[UpdateListener] = []
        self._aborts: dict[str, asyncio.Event] = {}
        self.backoff = ExponentialBackoff(
            max_attempts=self.config.max_retries + 1,
            base_delay=self.config.retry_delay,
            multiplier=self.config.retry_backoff,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_value(self) -> Any:
        """Current value, including pending optimistic updates."""
        return self._current_value

    def get_confirmed_value(self) -> Any:
        """Current value with every pending update unwound."""
        value = self._current_value
        for update in reversed(self.get_pending_updates()):
            value = update.previous_value
        return value

    def get_update(self, update_id: str) -> Optional[OptimisticUpdate]:
        return self._updates.get(update_id)

    def get_updates(self) -> list[OptimisticUpdate]:
        """All tracked updates in the order they were applied."""
        return list(self._updates.values())

    def get_pending_updates(self) -> list[OptimisticUpdate]:
        return [u for u in self._updates.values() if u.status == UpdateStatus.PENDING]

    def get_failed_updates(self) -> list[OptimisticUpdate]:
        return [u for u in self._updates.values() if u.status == UpdateStatus.FAILED]

    def has_pending_updates(self) -> bool:
        return any(u.status == UpdateStatus.PENDING for u in self._updates.values())

    def get_history(self) -> list[dict[str, Any]]:
        """Confirmed ``{"id", "value"}`` entries, oldest first."""
        return list(self._history)

    def get_stats(self) -> dict[str, int]:
        """Get update statistics.

        Returns:
            Count of updates per status plus the history size
        """
        counts = {status: 0 for status in UpdateStatus}
        for update in self._updates.values():
            counts[update.status] += 1

        return {
            "pending": counts[UpdateStatus.PENDING],
            "confirmed": counts[UpdateStatus.CONFIRMED],
            "failed": counts[UpdateStatus.FAILED],
            "rolled_back": counts[UpdateStatus.ROLLED_BACK],
            "history_size": len(self._history),
        }

    # ------------------------------------------------------------------
    # Mutating
    # ------------------------------------------------------------------

    async def apply_update(
        self,
        updater: Updater,
        mutation: MutationFn,
        *args: Any,
        **kwargs: Any,
    ) -> OptimisticResult:
        """Apply an optimistic update and reconcile it with the mutation.

        Args:
            updater: Pure transform from the current value to the optimistic one
            mutation: Async function returning the authoritative value
            *args: Positional arguments for mutation
            **kwargs: Keyword arguments for mutation

        Returns:
            OptimisticResult bound to the new update

        Raises:
            Exception: The mutation's last error, once the update has been
                rolled back because of it and ``raise_on_failure`` is set
        """
        previous_value = self._current_value
        optimistic_value = updater(previous_value)

        update = OptimisticUpdate(
            previous_value=previous_value,
            optimistic_value=optimistic_value,
            base_version=self._version,
        )
        self._write(optimistic_value)
        update.version = self._version

        self._updates[update.id] = update
        self._log(f"Applied optimistic update: {update.id}")
        self._notify(update)

        auto_retry = self.config.auto_retry and self.recovery_engine is None
        await self._settle(update, mutation, args, kwargs, auto_retry)

        self._raise_if_failed(update)
        return self._result(update, mutation, args, kwargs)

    async def retry_update(
        self,
        update_id: str,
        mutation: MutationFn,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Retry a failed update. Does nothing unless its status is ``failed``.

        An update that has already used up ``max_retries`` is not retried; it is
        rolled back instead when ``rollback_on_failure`` is set.
        """
        update = self._updates.get(update_id)
        if update is None or update.status != UpdateStatus.FAILED:
            return

        if update.retry_count >= self.config.max_retries:
            logger.debug(f"Not retrying {update_id}: {update.retry_count} retries already made")
            if self.config.rollback_on_failure:
                self.rollback_update(update_id)
                self._raise_if_failed(update)
            return

        if not await self._begin_retry(update):
            return

        await self._settle(update, mutation, args, kwargs, self.recovery_engine is None)
        self._raise_if_failed(update)

    def rollback_update(self, update_id: str) -> None:
        """Roll back a pending or failed update.

        The previous value is restored only while this update is still the
        most recent writer of the current value. Otherwise the rollback is
        recorded and takes effect when the updates applied on top of it unwind.
        Terminal updates are left alone.
        """
        update = self._updates.get(update_id)
        if update is None or update.is_terminal:
            return

        update.status = UpdateStatus.ROLLED_BACK
        abort = self._aborts.get(update_id)
        if abort is not None:
            abort.set()

        if update.version == self._version:
            self._unwind(update)
            self._log(f"Rolled back update: {update_id}")
        else:
            logger.debug(f"Rollback of {update_id} deferred, value was overwritten since")

        self._notify(update)

    def undo(self) -> Optional[Any]:
        """Restore the most recent confirmed history entry.

        Returns:
            The restored value, or None if history is empty
        """
        if not self._history:
            return None

        entry = self._history.pop()
        self._write(entry["value"])
        self._log(f"Undid update: {entry['id']}")
        return self._current_value

    def subscribe(self, listener: UpdateListener) -> Callable[[], None]:
        """Subscribe to update transitions.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        """Forget tracked updates and history. The current value is kept."""
        self._updates.clear()
        self._history = []

    def calculate_retry_delay(self, retry_count: int) -> float:
        """``retry_delay * retry_backoff ** (retry_count - 1)``, without jitter."""
        return self.backoff.get_delay(retry_count)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _settle(
        self,
        update: OptimisticUpdate,
        mutation: MutationFn,
        args: tuple,
        kwargs: dict,
        retry: bool,
    ) -> None:
        """Run the mutation until the update is confirmed, rolled back or left failed."""
        while True:
            try:
                server_value = await self._invoke(update, mutation, args, kwargs)
            except Exception as e:
                if update.status != UpdateStatus.PENDING:
                    logger.debug(f"Ignoring failure of abandoned update {update.id}: {e}")
                    return

                update.status = UpdateStatus.FAILED
                update.error = e
                self._log(f"Update failed: {update.id} ({e})")
                self._notify(update)

                if retry and self._should_retry(update, e):
                    if await self._begin_retry(update):
                        continue
                    return

                if self.config.rollback_on_failure:
                    self.rollback_update(update.id)
                return

            if update.status != UpdateStatus.PENDING:
                logger.debug(f"Discarding result of abandoned update {update.id}")
                return

            self._confirm(update, server_value)
            return

    async def _invoke(
        self,
        update: OptimisticUpdate,
        mutation: MutationFn,
        args: tuple,
        kwargs: dict,
    ) -> Any:
        if self.recovery_engine is not None:
            abort = self._aborts[update.id] = asyncio.Event()
            try:
                return await self.recovery_engine.execute(
                    self._call_with_timeout,
                    mutation,
                    args,
                    kwargs,
                    abort_event=abort,
                    operation_name=f"update {update.id}",
                )
            finally:
                self._aborts.pop(update.id, None)
        return await self._call_with_timeout(mutation, args, kwargs)

    async def _call_with_timeout(self, mutation: MutationFn, args: tuple, kwargs: dict) -> Any:
        timeout = self.config.timeout
        if timeout is None:
            return await mutation(*args, **kwargs)

        try:
            return await asyncio.wait_for(mutation(*args, **kwargs), timeout)
        except asyncio.TimeoutError as e:
            raise MutationTimeoutError(timeout) from e

    def _should_retry(self, update: OptimisticUpdate, error: BaseException) -> bool:
        if update.retry_count >= self.config.max_retries:
            return False

        classification = self.classifier(error)
        if not classification.recoverable:
            logger.debug(
                f"Not retrying {update.id}: {classification.category.value} errors are not recoverable"
            )
            return False
        return True

    async def _begin_retry(self, update: OptimisticUpdate) -> bool:
        """Move a failed update back to pending and wait out the backoff.

        Returns:
            False if the update was rolled back while waiting
        """
        update.retry_count += 1
        update.status = UpdateStatus.PENDING
        update.error = None
        self._notify(update)

        self._log(f"Retrying update {update.id} (attempt {update.retry_count})")
        delay = await self.backoff.wait(update.retry_count)
        logger.debug(f"Waited {delay:.2f}s before retrying {update.id}")

        if update.status != UpdateStatus.PENDING:
            logger.debug(f"Update {update.id} was rolled back before its retry")
            return False
        return True

    def _confirm(self, update: OptimisticUpdate, server_value: Any) -> None:
        value = server_value
        if self.conflict_resolver is not None:
            value = merge_with_conflict_resolution(
                update.optimistic_value, server_value, update.previous_value, self.conflict_resolver
            )

        update.status = UpdateStatus.CONFIRMED
        if update.version == self._version:
            self._write(value)
            update.version = self._version
        else:
            logger.debug(f"Update {update.id} confirmed after being overtaken, value kept")

        self._add_to_history(update.id, value)
        self._log(f"Confirmed update: {update.id}")
        self._notify(update)

    def _unwind(self, update: OptimisticUpdate) -> None:
        """Restore the value below ``update`` and keep unwinding rolled-back writers."""
        self._current_value = update.previous_value
        self._version = update.base_version

        below = self._writer_of(self._version)
        while below is not None and below.status == UpdateStatus.ROLLED_BACK:
            logger.debug(f"Applying deferred rollback of {below.id}")
            self._current_value = below.previous_value
            self._version = below.base_version
            below = self._writer_of(self._version)

    def _writer_of(self, version: int) -> Optional[OptimisticUpdate]:
        for update in self._updates.values():
            if update.version == version:
                return update
        return None

    def _write(self, value: Any) -> None:
        self._version_counter += 1
        self._version = self._version_counter
        self._current_value = value

    def _add_to_history(self, update_id: str, value: Any) -> None:
        if not self.config.keep_history:
            return

        self._history.append({"id": update_id, "value": value})

        while len(self._history) > self.config.max_history_size:
            self._history.pop(0)

    def _raise_if_failed(self, update: OptimisticUpdate) -> None:
        if (
            self.config.raise_on_failure
            and update.status == UpdateStatus.ROLLED_BACK
            and update.error is not None
        ):
            raise update.error

    def _result(
        self,
        update: OptimisticUpdate,
        mutation: MutationFn,
        args: tuple,
        kwargs: dict,
    ) -> OptimisticResult:
        async def retry() -> None:
            await self.retry_update(update.id, mutation, *args, **kwargs)

        def rollback() -> None:
            self.rollback_update(update.id)

        return OptimisticResult(
            update_id=update.id,
            value=self._current_value,
            status=update.status,
            error=update.error,
            retry=retry,
            rollback=rollback,
        )

    def _notify(self, update: OptimisticUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                logger.exception(f"Update listener raised for {update.id}")

    def _log(self, message: str) -> None:
        if self.config.debug:
            logger.info(message)
        else:
            logger.debug(message)


def create_optimistic_manager(
    initial_value: Any,
    config: Union[OptimisticConfig, dict, None] = None,
    **kwargs: Any,
) -> OptimisticUpdateManager:
    """Create an optimistic update manager."""
    return OptimisticUpdateManager(initial_value, config, **kwargs)
