from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from services.vault.app.logging import logger
from services.vault.app.schemas import PasswordRecord


class RefreshNotifier(Protocol):
    def invalidate(self, reason: str) -> None: ...


class RefreshBus:
    """
    Fans a refresh signal out to every subscribed read-side cache.

    Delivery is best effort: a subscriber that raises is logged and skipped,
    and the mutation that triggered the signal still succeeds.
    """

    def __init__(self) -> None:
        self._subscribers: list[RefreshNotifier] = []

    def subscribe(self, notifier: RefreshNotifier) -> None:
        if notifier not in self._subscribers:
            self._subscribers.append(notifier)

    def unsubscribe(self, notifier: RefreshNotifier) -> None:
        if notifier in self._subscribers:
            self._subscribers.remove(notifier)

    def invalidate(self, reason: str) -> None:
        for notifier in list(self._subscribers):
            try:
                notifier.invalidate(reason)
            except Exception:
                logger.warning("refresh_listener_failed", reason=reason, listener=type(notifier).__name__, exc_info=True)


class RecordListCache:
    """
    Read-side cache of the full decrypted record list.

    A load that overlaps an invalidation returns what it read but is not kept:
    the generation captured before the load must still be current when it
    finishes, otherwise the next `get()` reloads.
    """

    def __init__(self) -> None:
        self._records: list[PasswordRecord] | None = None
        self._generation = 0
        self.invalidations = 0

    @property
    def is_warm(self) -> bool:
        return self._records is not None

    async def get(self, loader: Callable[[], Awaitable[list[PasswordRecord]]]) -> list[PasswordRecord]:
        if self._records is not None:
            return list(self._records)
        generation = self._generation
        records = await loader()
        if generation == self._generation:
            self._records = records
        else:
            logger.debug("record_list_load_discarded", generation=generation)
        return list(records)

    def invalidate(self, reason: str) -> None:
        self._records = None
        self._generation += 1
        self.invalidations += 1
        logger.debug("record_list_invalidated", reason=reason)
