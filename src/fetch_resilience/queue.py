"""
Bounded-concurrency FIFO queue
"""
import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Set, TypeVar

from .abort import AbortSignal
from .config import QueueConfig, merge_queue_config
from .errors import FetchAbortedError
from .types import QueueTask

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.queue")


class ConcurrencyQueue:
    """
    Concurrency Queue

    Runs at most `concurrency` tasks at once. Pending tasks are admitted in
    FIFO submission order; every returned awaitable settles with exactly
    its own task's outcome.

    Example:
        queue = ConcurrencyQueue(QueueConfig(concurrency=2))
        results = await asyncio.gather(*[
            queue.enqueue(lambda u=url: transport(u, RequestConfig()))
            for url in urls
        ])
    """

    def __init__(self, config: Optional[QueueConfig] = None) -> None:
        self._config = merge_queue_config(config)
        self._pending: Deque[QueueTask[Any]] = deque()
        self._running = 0
        self._workers: Set[asyncio.Task] = set()
        self._total_processed = 0

    async def enqueue(
        self,
        run: Callable[[], Awaitable[T]],
        signal: Optional[AbortSignal] = None,
    ) -> T:
        """
        Submit a task and wait for its outcome.

        A task whose signal fires while still pending is skipped at
        admission and never runs.

        Args:
            run: Factory producing the awaitable to execute
            signal: Optional abort signal

        Returns:
            The task's own result
        """
        if signal is not None:
            signal.throw_if_aborted()

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._pending.append(QueueTask(run=run, future=future, enqueued_at=time.monotonic()))
        logger.debug(f"queue: enqueued, pending={len(self._pending)} running={self._running}")
        self._dispatch()

        if signal is None:
            return await future
        try:
            return await signal.race(asyncio.shield(future))
        except FetchAbortedError:
            if not future.done():
                future.cancel()
            raise

    def _dispatch(self) -> None:
        while self._running < self._config.concurrency and self._pending:
            task = self._pending.popleft()
            if task.future.done():
                # Aborted while pending
                continue
            self._running += 1
            logger.debug(
                f"queue: admitted after {time.monotonic() - task.enqueued_at:.3f}s, "
                f"running={self._running}"
            )
            worker = asyncio.ensure_future(self._execute(task))
            self._workers.add(worker)
            worker.add_done_callback(self._workers.discard)

    async def _execute(self, task: QueueTask[Any]) -> None:
        try:
            result = await task.run()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as error:
            if not task.future.done():
                task.future.set_exception(error)
        else:
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._running -= 1
            self._total_processed += 1
            self._dispatch()

    @property
    def running(self) -> int:
        """Number of tasks currently executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Number of tasks waiting for admission."""
        return sum(1 for task in self._pending if not task.future.done())

    @property
    def concurrency(self) -> int:
        return self._config.concurrency

    @property
    def total_processed(self) -> int:
        return self._total_processed


def create_concurrency_queue(concurrency: int = 3) -> ConcurrencyQueue:
    """Create a concurrency queue."""
    return ConcurrencyQueue(QueueConfig(concurrency=concurrency))
