"""
Explicit cancellation tokens.

An AbortSignal is passed into every asynchronous operation of the engine
and checked at each suspension point (queue admission, transport call,
backoff wait, cache and offline writes).
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from .errors import FetchAbortedError

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.abort")


class AbortSignal:
    """Read side of an abort token."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._listeners: List[Callable[[Optional[str]], None]] = []

    @property
    def aborted(self) -> bool:
        """Whether abort() has been called on the owning controller."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def throw_if_aborted(self, url: Optional[str] = None) -> None:
        """Raise FetchAbortedError if the signal has fired."""
        if self.aborted:
            raise FetchAbortedError(url=url, reason=self._reason)

    def add_listener(self, listener: Callable[[Optional[str]], None]) -> Callable[[], None]:
        """
        Register a callback invoked once when the signal fires.

        Returns:
            Function to remove the listener
        """
        if self.aborted:
            listener(self._reason)
            return lambda: None
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _fire(self, reason: Optional[str]) -> None:
        if self.aborted:
            return
        self._reason = reason
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(reason)
            except Exception:
                logger.warning("abort listener failed", exc_info=True)

    async def race(self, awaitable: Awaitable[T], url: Optional[str] = None) -> T:
        """
        Await an operation unless the signal fires first.

        When the signal wins, the operation is cancelled and
        FetchAbortedError is raised.
        """
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise FetchAbortedError(url=url, reason=self._reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            task.exception()
        raise FetchAbortedError(url=url, reason=self._reason)


class AbortController:
    """
    Owner of an AbortSignal.

    Example:
        controller = AbortController()
        pending = asyncio.create_task(engine.fetch("/users/1", signal=controller.signal))
        controller.abort("navigated away")
    """

    def __init__(self) -> None:
        self._signal = AbortSignal()

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    def abort(self, reason: Optional[str] = None) -> None:
        """Fire the signal. Subsequent calls are no-ops."""
        self._signal._fire(reason)


async def sleep(seconds: float, signal: Optional[AbortSignal] = None) -> None:
    """Sleep for a duration, waking early with FetchAbortedError on abort."""
    if signal is None:
        await asyncio.sleep(seconds)
        return
    await signal.race(asyncio.sleep(seconds))


async def run_with_signal(
    awaitable: Awaitable[T],
    signal: Optional[AbortSignal],
    url: Optional[str] = None,
) -> T:
    """Await directly when there is no signal, otherwise race against it."""
    if signal is None:
        return await awaitable
    return await signal.race(awaitable, url)
