"""
Types for fetch_resilience package.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Mapping,
    Optional,
    Protocol,
    TypeVar,
    Union,
)

import httpx

if TYPE_CHECKING:
    from .abort import AbortController, AbortSignal

T = TypeVar("T")

HttpMethod = str
RequestBody = Union[str, bytes, None]


@dataclass(frozen=True)
class RequestConfig:
    """Outgoing request configuration. Immutable once created."""

    method: HttpMethod = "GET"
    """HTTP method."""

    headers: Mapping[str, str] = field(default_factory=dict)
    """Request headers, in insertion order."""

    body: RequestBody = None
    """Raw request body."""

    json: Any = None
    """JSON-serializable body (used when body is None)."""

    params: Optional[Mapping[str, Any]] = None
    """Query string parameters."""

    timeout: Optional[float] = None
    """Per-request timeout in seconds."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if self.params is not None:
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def with_headers(self, headers: Mapping[str, str]) -> "RequestConfig":
        """Return a copy with the given headers merged over the current ones."""
        merged = dict(self.headers)
        merged.update(headers)
        return replace(self, headers=merged)

    def evolve(self, **changes: Any) -> "RequestConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class RequestDescriptor:
    """A URL together with its request configuration."""

    url: str
    config: RequestConfig = field(default_factory=RequestConfig)

    @property
    def identity_key(self) -> str:
        """Deterministic identity key used for deduplication and caching."""
        from .identity import generate_identity_key

        return generate_identity_key(self.url, self.config)


@dataclass
class CacheEntry(Generic[T]):
    """Memoized fetch result."""

    data: T
    """The cached value."""

    stored_at: float
    """Clock reading when the value was stored (seconds)."""


@dataclass
class InFlightEntry(Generic[T]):
    """Tracker for an in-flight deduplicated operation."""

    key: str
    """Identity key of the request."""

    task: "asyncio.Task[T]"
    """Task driving the shared operation."""

    subscribers: int = 1
    """Number of callers currently waiting on the task."""

    started_at: float = 0
    """When the operation was started (monotonic seconds)."""

    controller: Optional["AbortController"] = None
    """Aborts the shared operation once every subscriber has detached."""


@dataclass
class QueueTask(Generic[T]):
    """A unit of work waiting for admission in the concurrency queue."""

    run: Callable[[], Awaitable[T]]
    """Factory producing the awaitable to execute."""

    future: "asyncio.Future[T]"
    """Future settled with the task's own outcome."""

    enqueued_at: float = 0
    """When the task was enqueued (monotonic seconds)."""


RequestInterceptor = Callable[[RequestConfig], RequestConfig]
"""Request-side interceptor."""

ResponseInterceptor = Callable[[httpx.Response], httpx.Response]
"""Response-side interceptor."""


class Transport(Protocol):
    """Capability that sends a single request."""

    def __call__(
        self,
        url: str,
        config: RequestConfig,
        signal: Optional["AbortSignal"] = None,
    ) -> Awaitable[httpx.Response]:
        ...


class DurableStore(ABC):
    """Asynchronous key-value store backing the offline fallback."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[Any]:
        """Get a value by key, or None if absent."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: Any) -> None:
        """Store a value under a key, replacing any previous value."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove all keys."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the store and release resources."""
        pass


class FetchEventType(str, Enum):
    """Event types emitted by engine components."""

    DEDUP_LEAD = "dedup:lead"
    DEDUP_JOIN = "dedup:join"
    DEDUP_COMPLETE = "dedup:complete"
    DEDUP_ERROR = "dedup:error"
    ATTEMPT_START = "attempt:start"
    ATTEMPT_SUCCESS = "attempt:success"
    ATTEMPT_FAIL = "attempt:fail"
    RETRY_WAIT = "retry:wait"


@dataclass
class FetchEvent:
    """Event emitted by an engine component."""

    type: FetchEventType
    key: str
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)


FetchEventListener = Callable[[FetchEvent], None]
"""Event listener type."""


class ConnectivityState(str, Enum):
    """Connectivity signal names."""

    ONLINE = "online"
    OFFLINE = "offline"


ConnectivityListener = Callable[[ConnectivityState], None]
"""Connectivity listener type."""
