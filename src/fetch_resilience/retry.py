"""
Retry policy with exponential backoff.
"""
import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

import httpx

from . import abort
from .abort import AbortSignal
from .config import RetryConfig, calculate_backoff_delay, merge_retry_config
from .errors import FetchAbortedError, HTTPStatusError
from .types import FetchEvent, FetchEventListener, FetchEventType, RequestConfig

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.retry")

SleepFn = Callable[[float, Optional[AbortSignal]], Awaitable[None]]


@dataclass
class RetryResult(Generic[T]):
    """Result of a retried operation"""

    result: T
    """The result of the operation"""

    retries: int
    """Number of retries attempted (0 if succeeded on first try)"""

    delay_time_seconds: float
    """Time spent in backoff delays (seconds)"""


class RetryPolicy:
    """
    Retry Policy

    Re-issues an operation on transport failure:
    - At most `retries` retries after the first attempt
    - Delay before retry n+1 is backoff * 2^n (no jitter, optional cap)
    - The terminal error is re-raised unchanged
    - HTTP error statuses are retried only when listed in retry_on_status
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        """
        Create a new RetryPolicy.

        Args:
            config: Retry configuration
            sleep: Abort-aware sleep used for backoff delays
        """
        self._config = merge_retry_config(config)
        self._sleep = sleep or abort.sleep
        self._listeners: List[FetchEventListener] = []

    def is_retryable(self, error: BaseException) -> bool:
        """Check if an error is eligible for retry."""
        if isinstance(error, FetchAbortedError):
            return False
        if isinstance(error, HTTPStatusError):
            return error.status_code in self._config.retry_on_status
        return isinstance(error, self._config.retry_on_errors)

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        signal: Optional[AbortSignal] = None,
        key: str = "",
    ) -> RetryResult[T]:
        """
        Execute an operation with retry logic.

        Args:
            fn: Async function performing one attempt
            retries: Override the configured retry count for this call
            backoff_seconds: Override the configured first delay for this call
            signal: Abort signal checked before every attempt and during waits
            key: Label used in events and logs

        Returns:
            Result with retry metadata
        """
        max_retries = self._config.retries if retries is None else retries
        if max_retries < 0:
            raise ValueError(f"retries must be >= 0, got {max_retries}")
        config = self._config
        if backoff_seconds is not None:
            config = replace(config, backoff_seconds=backoff_seconds)

        delay_time = 0.0
        attempt = 0

        while True:
            if signal is not None:
                signal.throw_if_aborted(key or None)

            self._emit(FetchEventType.ATTEMPT_START, key, {"attempt": attempt})
            try:
                result = await fn()
            except Exception as error:
                will_retry = attempt < max_retries and self.is_retryable(error)
                self._emit(
                    FetchEventType.ATTEMPT_FAIL,
                    key,
                    {"attempt": attempt, "error": str(error), "will_retry": will_retry},
                )
                if not will_retry:
                    raise

                delay = calculate_backoff_delay(attempt, config)
                delay_time += delay
                logger.debug(
                    f"retry: {key} attempt {attempt} failed ({type(error).__name__}), "
                    f"waiting {delay:.3f}s"
                )
                self._emit(FetchEventType.RETRY_WAIT, key, {"attempt": attempt, "delay_seconds": delay})

                await self._sleep(delay, signal)
                attempt += 1
                continue

            self._emit(FetchEventType.ATTEMPT_SUCCESS, key, {"attempt": attempt})
            return RetryResult(result=result, retries=attempt, delay_time_seconds=delay_time)

    async def retry(
        self,
        url: str,
        config: RequestConfig,
        send: Callable[[str, RequestConfig, Optional[AbortSignal]], Awaitable[httpx.Response]],
        *,
        retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        """
        Send a request, retrying transport failures.

        A response whose status is listed in retry_on_status is treated as a
        failure; when retries run out the HTTPStatusError is raised.
        """

        async def attempt() -> httpx.Response:
            response = await send(url, config, signal)
            if response.status_code in self._config.retry_on_status:
                raise HTTPStatusError(response, url)
            return response

        outcome = await self.execute(
            attempt, retries=retries, backoff_seconds=backoff_seconds, signal=signal, key=url
        )
        return outcome.result

    def on(self, listener: FetchEventListener) -> Callable[[], None]:
        """
        Add an event listener.

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def off(self, listener: FetchEventListener) -> None:
        """Remove an event listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event_type: FetchEventType, key: str, metadata: dict) -> None:
        event = FetchEvent(type=event_type, key=key, timestamp=time.time(), metadata=metadata)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(f"retry listener failed for {event_type.value}", exc_info=True)

    @property
    def config(self) -> RetryConfig:
        """Get the current configuration."""
        return self._config


def create_retry_policy(
    config: Optional[RetryConfig] = None,
    sleep: Optional[SleepFn] = None,
) -> RetryPolicy:
    """Create a new retry policy."""
    return RetryPolicy(config, sleep)
