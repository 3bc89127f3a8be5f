"""
Request deduplication.

When several identical requests overlap, only one operation runs and
every caller receives its outcome.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Set, TypeVar

from .abort import AbortController, AbortSignal, run_with_signal
from .config import DedupConfig, merge_dedup_config
from .identity import generate_identity_key
from .stores.memory import MemoryInFlightStore
from .types import (
    FetchEvent,
    FetchEventListener,
    FetchEventType,
    InFlightEntry,
    RequestConfig,
)

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.dedup")


def _consume_outcome(task: "asyncio.Task") -> None:
    # Outcome of an operation every caller detached from is intentionally unobserved
    if not task.cancelled():
        task.exception()


def _is_abandoned(entry: InFlightEntry) -> bool:
    # Every subscriber detached and the operation was aborted; it is only winding down
    return entry.controller is not None and entry.controller.signal.aborted


class Deduplicator:
    """
    Deduplicator - collapses concurrent identical requests.

    At most one InFlightEntry exists per identity key. The entry is removed
    inside the operation itself, before its outcome reaches any caller, so
    callers arriving after settlement start a fresh operation.

    Each caller may pass its own abort signal. Aborting detaches only that
    caller; the shared operation is aborted once no subscriber is left.

    Example:
        dedup = Deduplicator()

        # 50 overlapping calls result in a single transport call
        results = await asyncio.gather(*[
            dedup.fetch_deduped("/api/data", RequestConfig(), transport)
            for _ in range(50)
        ])
    """

    def __init__(
        self,
        config: Optional[DedupConfig] = None,
        store: Optional[MemoryInFlightStore] = None,
    ) -> None:
        self._config = merge_dedup_config(config)
        self._store = store or MemoryInFlightStore()
        self._listeners: Set[FetchEventListener] = set()

    def generate_key(self, url: str, config: Optional[RequestConfig] = None) -> str:
        """Compute the identity key of a request."""
        config = config or RequestConfig()
        generator = self._config.key_generator or generate_identity_key
        return generator(url, config)

    async def fetch_deduped(
        self,
        url: str,
        config: Optional[RequestConfig],
        send: Callable[[str, RequestConfig, Optional[AbortSignal]], Awaitable[T]],
        signal: Optional[AbortSignal] = None,
    ) -> T:
        """
        Issue a request unless an identical one is already in flight.

        Args:
            url: Request URL
            config: Request configuration
            send: Capability performing the actual request
            signal: Caller's abort signal

        Returns:
            The (possibly shared) result of the operation
        """
        config = config or RequestConfig()
        key = self.generate_key(url, config)
        return await self.do(key, lambda op_signal: send(url, config, op_signal), signal)

    async def do(
        self,
        key: str,
        fn: Callable[[AbortSignal], Awaitable[T]],
        signal: Optional[AbortSignal] = None,
    ) -> T:
        """
        Run fn under an identity key, joining an in-flight run if one exists.

        fn receives the abort signal of the shared operation.
        """
        if signal is not None:
            signal.throw_if_aborted()

        if not self._config.enabled:
            return await fn(signal or AbortController().signal)

        entry = self._store.get(key)
        if entry is not None and not entry.task.done() and not _is_abandoned(entry):
            entry.subscribers += 1
            logger.debug(f"dedup join: key={key} subscribers={entry.subscribers}")
            self._emit(FetchEventType.DEDUP_JOIN, key, {"subscribers": entry.subscribers})
        else:
            entry = self._start(key, fn)

        return await self._wait(entry, signal)

    def _start(self, key: str, fn: Callable[[AbortSignal], Awaitable[T]]) -> InFlightEntry:
        controller = AbortController()
        task = asyncio.ensure_future(self._lead(key, fn, controller.signal))
        entry = InFlightEntry(
            key=key,
            task=task,
            subscribers=1,
            started_at=time.monotonic(),
            controller=controller,
        )
        # Registered before the task first runs; no await between create and insert
        self._store.set(key, entry)
        task.add_done_callback(_consume_outcome)

        logger.debug(f"dedup lead: key={key}")
        self._emit(FetchEventType.DEDUP_LEAD, key)
        return entry

    async def _lead(
        self,
        key: str,
        fn: Callable[[AbortSignal], Awaitable[T]],
        signal: AbortSignal,
    ) -> T:
        started_at = time.monotonic()
        try:
            value = await fn(signal)
        except Exception as error:
            self._emit(FetchEventType.DEDUP_ERROR, key, {"error": str(error)})
            raise
        else:
            current = self._store.get(key)
            self._emit(
                FetchEventType.DEDUP_COMPLETE,
                key,
                {
                    "subscribers": current.subscribers if current else 1,
                    "duration_seconds": time.monotonic() - started_at,
                },
            )
            return value
        finally:
            current = self._store.get(key)
            if current is not None and current.task is asyncio.current_task():
                self._store.delete(key)

    async def _wait(self, entry: InFlightEntry, signal: Optional[AbortSignal]) -> T:
        try:
            return await run_with_signal(asyncio.shield(entry.task), signal)
        except asyncio.CancelledError:
            self._detach(entry)
            raise
        except Exception:
            if signal is not None and signal.aborted and not entry.task.done():
                self._detach(entry)
            raise

    def _detach(self, entry: InFlightEntry) -> None:
        entry.subscribers -= 1
        logger.debug(f"dedup detach: key={entry.key} subscribers={entry.subscribers}")
        if entry.subscribers <= 0 and not entry.task.done() and entry.controller is not None:
            entry.controller.abort("all subscribers aborted")

    def is_in_flight(self, url: str, config: Optional[RequestConfig] = None) -> bool:
        """Check if a request is currently in flight."""
        return self._store.has(self.generate_key(url, config))

    def get_subscribers(self, url: str, config: Optional[RequestConfig] = None) -> int:
        """Get the number of callers waiting on an in-flight request."""
        entry = self._store.get(self.generate_key(url, config))
        return entry.subscribers if entry else 0

    @property
    def in_flight(self) -> int:
        """Number of in-flight operations."""
        return self._store.size()

    def get_config(self) -> DedupConfig:
        return self._config

    def on(self, listener: FetchEventListener) -> Callable[[], None]:
        """Add event listener."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: FetchEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(self, event_type: FetchEventType, key: str, metadata: Optional[dict] = None) -> None:
        event = FetchEvent(type=event_type, key=key, timestamp=time.time(), metadata=metadata or {})
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(f"dedup listener failed for {event_type.value}", exc_info=True)

    def close(self) -> None:
        """Release listeners and forget in-flight entries."""
        self._store.clear()
        self._listeners.clear()


def create_deduplicator(
    config: Optional[DedupConfig] = None,
    store: Optional[MemoryInFlightStore] = None,
) -> Deduplicator:
    """Create a deduplicator instance."""
    return Deduplicator(config, store)
