"""Pytest configuration and fixtures for fetch_resilience tests."""
import asyncio
from typing import Any, Callable, List, Optional, Tuple

import httpx
import pytest

from fetch_resilience import (
    AbortSignal,
    ConnectivityMonitor,
    EngineConfig,
    FetchEngine,
    MemoryDurableStore,
    QueueConfig,
    RequestConfig,
    RetryConfig,
)
from fetch_resilience.abort import run_with_signal


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build an httpx response carrying a JSON body."""
    return httpx.Response(status_code, json=data)


class FakeTransport:
    """
    Scripted transport.

    Outcomes are consumed in order; an exception instance is raised, a
    callable is invoked with (url, config), anything else is returned.
    When the script is empty the default outcome is used. Setting `gate`
    holds every call until the event is set.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None, default: Any = None) -> None:
        self.calls: List[Tuple[str, RequestConfig]] = []
        self._outcomes = list(outcomes or [])
        self._default = default if default is not None else json_response({"ok": True})
        self.gate: Optional[asyncio.Event] = None
        self.active = 0
        self.max_active = 0

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def __call__(
        self,
        url: str,
        config: RequestConfig,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        self.calls.append((url, config))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await run_with_signal(self.gate.wait(), signal, url)
            else:
                await asyncio.sleep(0)
            outcome = self._outcomes.pop(0) if self._outcomes else self._default
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                return outcome(url, config)
            return outcome
        finally:
            self.active -= 1


class RecordingSleep:
    """Backoff sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float, signal: Optional[AbortSignal] = None) -> None:
        self.delays.append(seconds)
        if signal is not None:
            signal.throw_if_aborted()
        await asyncio.sleep(0)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def durable_store() -> MemoryDurableStore:
    return MemoryDurableStore()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=True)


@pytest.fixture
def make_engine(
    recording_sleep: RecordingSleep,
    clock: FakeClock,
    durable_store: MemoryDurableStore,
    monitor: ConnectivityMonitor,
) -> Callable[..., FetchEngine]:
    """Factory building an engine around a transport with fake time."""

    def factory(transport: Any, config: Optional[EngineConfig] = None) -> FetchEngine:
        return FetchEngine(
            transport,
            config or EngineConfig(retry=RetryConfig(retries=3), queue=QueueConfig(concurrency=3)),
            durable_store=durable_store,
            monitor=monitor,
            sleep=recording_sleep,
            clock=clock,
        )

    return factory
