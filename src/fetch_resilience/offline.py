"""
Offline fallback store.

Every successful online fetch is mirrored into a durable key-value store;
while offline, the last mirrored value substitutes for the network result.
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Union

from .connectivity import ConnectivityMonitor
from .stores.memory import MemoryDurableStore
from .types import ConnectivityState, DurableStore

logger = logging.getLogger("fetch_resilience.offline")

OfflineCallback = Callable[[Optional[Any]], Union[None, Awaitable[None]]]


class OfflineFallbackStore:
    """
    Durable fallback consulted when connectivity is unavailable.

    A missing record is reported as None (absence), never as an error, so
    callers can render an empty-but-valid state.

    Example:
        offline = OfflineFallbackStore(RedisDurableStore(client), monitor)
        await offline.persist(key, data)
        ...
        cached = await offline.retrieve(key)
    """

    def __init__(
        self,
        store: Optional[DurableStore] = None,
        monitor: Optional[ConnectivityMonitor] = None,
    ) -> None:
        self._store = store or MemoryDurableStore()
        self._monitor = monitor or ConnectivityMonitor()
        self._background: Set[asyncio.Task] = set()

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    @property
    def store(self) -> DurableStore:
        return self._store

    @property
    def is_offline(self) -> bool:
        return self._monitor.offline

    async def persist(self, key: str, data: Any) -> None:
        """Write the most recent successful result for key."""
        await self._store.set_item(key, data)
        logger.debug(f"offline persist: {key}")

    def persist_nowait(self, key: str, data: Any) -> "asyncio.Task[None]":
        """Schedule persist() without waiting; failures are logged."""
        task = asyncio.ensure_future(self.persist(key, data))
        self._track(task, f"offline persist failed for {key}")
        return task

    async def retrieve(self, key: str) -> Optional[Any]:
        """Return the last persisted value for key, or None if absent."""
        value = await self._store.get_item(key)
        logger.debug(f"offline retrieve: {key} {'hit' if value is not None else 'absent'}")
        return value

    def subscribe(self, key: str, callback: OfflineCallback) -> Callable[[], None]:
        """
        Deliver the stored record for key whenever connectivity is lost.

        Delivery also happens right away when subscribing while offline.
        The callback receives the record or None and may be a coroutine
        function.

        Returns:
            Function to unsubscribe
        """

        def on_change(state: ConnectivityState) -> None:
            if state is ConnectivityState.OFFLINE:
                self._schedule_delivery(key, callback)

        unsubscribe = self._monitor.on(on_change)
        if self._monitor.offline:
            self._schedule_delivery(key, callback)
        return unsubscribe

    def _schedule_delivery(self, key: str, callback: OfflineCallback) -> None:
        task = asyncio.ensure_future(self._deliver(key, callback))
        self._track(task, f"offline delivery failed for {key}")

    async def _deliver(self, key: str, callback: OfflineCallback) -> None:
        value = await self.retrieve(key)
        result = callback(value)
        if inspect.isawaitable(result):
            await result

    def _track(self, task: asyncio.Task, message: str) -> None:
        self._background.add(task)

        def done(finished: asyncio.Task) -> None:
            self._background.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.warning(message, exc_info=finished.exception())

        task.add_done_callback(done)

    async def flush(self) -> None:
        """Wait for scheduled writes and deliveries to finish."""
        while self._background:
            await asyncio.wait(set(self._background))

    async def close(self) -> None:
        await self.flush()
        await self._store.close()
