"""
Resilient fetch engine.

Composes the interceptor pipeline, deduplicator, retry policy, concurrency
queue, cache store and offline fallback store around an injected transport.
All registries are owned by the engine instance; construct one engine and
pass it to callers.
"""
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from .abort import AbortSignal
from .cache import CacheStore
from .config import EngineConfig
from .connectivity import ConnectivityMonitor
from .dedup import Deduplicator
from .errors import SerializationError, raise_for_status
from .interceptors import InterceptorPipeline
from .offline import OfflineFallbackStore
from .queue import ConcurrencyQueue
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, SleepFn
from .types import (
    DurableStore,
    RequestConfig,
    RequestInterceptor,
    ResponseInterceptor,
    Transport,
)

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.engine")


def decode_json(response: httpx.Response, url: Optional[str] = None) -> Any:
    """Decode a JSON body or raise SerializationError."""
    try:
        return response.json()
    except ValueError as error:
        raise SerializationError(f"Response body is not valid JSON: {error}", url) from error


class FetchEngine:
    """
    FetchEngine

    Request flow:
        rate limit -> dedup -> queue -> request interceptors
        -> retry(transport) -> response interceptors -> cache + offline mirror

    Example:
        engine = FetchEngine(HttpxTransport(base_url="https://api.example.com"))
        user = await engine.fetch_data("/users/1")
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[EngineConfig] = None,
        *,
        durable_store: Optional[DurableStore] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        sleep: Optional[SleepFn] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Create a new FetchEngine.

        Args:
            transport: Capability sending one request
            config: Engine configuration
            durable_store: Backend of the offline fallback store
            monitor: Connectivity monitor; a fresh online one by default
            sleep: Backoff sleep override
            clock: Clock used by the cache and rate limiter
        """
        self._config = config or EngineConfig()
        self._transport = transport

        self.interceptors = InterceptorPipeline()
        self.dedup = Deduplicator(self._config.dedup)
        self.retry_policy = RetryPolicy(self._config.retry, sleep)
        self.queue = ConcurrencyQueue(self._config.queue)
        clock = clock or time.monotonic
        self.cache: CacheStore[Any] = CacheStore(self._config.cache, clock)
        self.offline = OfflineFallbackStore(durable_store, monitor)

        self.rate_limiter: Optional[RateLimiter] = None
        if self._config.rate_limit is not None:
            self.rate_limiter = RateLimiter(self._config.rate_limit, clock)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self.offline.monitor

    # Interceptor registration

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> Callable[[], None]:
        return self.interceptors.add_request_interceptor(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> Callable[[], None]:
        return self.interceptors.add_response_interceptor(interceptor)

    # Single-concern operations

    async def fetch_deduped(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        """Send through the transport, collapsing identical in-flight requests."""
        return await self.dedup.fetch_deduped(url, config, self._transport, signal)

    async def intercept(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        """Send through the transport with both interceptor chains applied."""
        return await self.interceptors.intercept(url, config or RequestConfig(), self._transport, signal)

    async def retry(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        retries: Optional[int] = None,
        signal: Optional[AbortSignal] = None,
        *,
        backoff_seconds: Optional[float] = None,
    ) -> httpx.Response:
        """Send through the transport, retrying transport failures."""
        return await self.retry_policy.retry(
            url,
            config or RequestConfig(),
            self._transport,
            retries=retries,
            backoff_seconds=backoff_seconds,
            signal=signal,
        )

    async def enqueue(
        self,
        task: Callable[[], Awaitable[T]],
        signal: Optional[AbortSignal] = None,
    ) -> T:
        """Run a task under the engine's concurrency bound."""
        return await self.queue.enqueue(task, signal)

    # Composed operations

    async def fetch(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        *,
        retries: Optional[int] = None,
        signal: Optional[AbortSignal] = None,
    ) -> httpx.Response:
        """
        Run a request through the whole pipeline and return the response.

        The response status is not checked here.
        """
        config = config or RequestConfig()
        self._acquire_budget()
        key = "response:" + self.dedup.generate_key(url, config)
        return await self.dedup.do(
            key,
            lambda op_signal: self.queue.enqueue(
                lambda: self._send(url, config, retries, op_signal), op_signal
            ),
            signal,
        )

    async def fetch_data(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        *,
        offline: Optional[bool] = None,
        use_cache: bool = True,
        retries: Optional[int] = None,
        signal: Optional[AbortSignal] = None,
    ) -> Any:
        """
        Fetch and decode JSON data with caching and offline fallback.

        While offline (per the connectivity monitor, or offline=True) the
        last value mirrored for this request is returned, or None when the
        request was never fetched successfully. Online, a fresh cache entry
        is returned without network work; otherwise the request runs through
        the pipeline, its status is checked, the body decoded, and the value
        stored in the cache and mirrored into the offline store.

        Raises:
            HTTPStatusError: non-2xx response
            SerializationError: body is not JSON
            TransportError: network failure after retries
            RateLimitError: request budget exhausted
        """
        config = self._with_default_headers(config)
        key = self.dedup.generate_key(url, config)

        is_offline = self.offline.is_offline if offline is None else offline
        if is_offline:
            logger.debug(f"fetch_data: offline, substituting stored record for {url}")
            return await self.offline.retrieve(key)

        cache_enabled = use_cache and self.cache_enabled
        if cache_enabled:
            entry = self.cache.get(key)
            if entry is not None:
                return entry.data

        self._acquire_budget()
        return await self.dedup.do(
            "data:" + key,
            lambda op_signal: self._load(url, config, key, retries, op_signal, cache_enabled),
            signal,
        )

    async def fetch_cached(
        self,
        url: str,
        config: Optional[RequestConfig] = None,
        *,
        signal: Optional[AbortSignal] = None,
    ) -> Any:
        """Fetch JSON data honoring the TTL cache, ignoring connectivity state."""
        return await self.fetch_data(url, config, offline=False, signal=signal)

    async def mutate(
        self,
        url: str,
        method: str = "POST",
        data: Any = None,
        *,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        headers: Optional[Dict[str, str]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> Any:
        """
        Send a JSON body and return the decoded response.

        Mutations bypass deduplication and the cache and are not retried.
        on_error is called before the error is re-raised.
        """
        config = self._with_default_headers(
            RequestConfig(method=method, headers=headers or {}, json=data)
        )
        try:
            self._acquire_budget()
            response = await self.queue.enqueue(
                lambda: self._send(url, config, 0, signal), signal
            )
            raise_for_status(response, url)
            result = decode_json(response, url)
        except Exception as error:
            logger.debug(f"mutate: {method} {url} failed: {error}")
            if on_error is not None:
                on_error(error)
            raise

        if on_success is not None:
            on_success(result)
        return result

    async def graphql_query(
        self,
        url: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        *,
        signal: Optional[AbortSignal] = None,
    ) -> Any:
        """POST a GraphQL query and return the "data" member of the reply."""
        payload: Dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables
        config = self._with_default_headers(RequestConfig(method="POST", json=payload))

        response = await self.fetch(url, config, signal=signal)
        raise_for_status(response, url)
        body = decode_json(response, url)
        if not isinstance(body, dict):
            raise SerializationError("GraphQL reply is not a JSON object", url)
        return body.get("data")

    # Internals

    @property
    def cache_enabled(self) -> bool:
        return self._config.cache is None or self._config.cache.enabled

    def _acquire_budget(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

    def _with_default_headers(self, config: Optional[RequestConfig]) -> RequestConfig:
        config = config or RequestConfig()
        if not self._config.default_headers:
            return config
        present = {name.lower() for name in config.headers}
        missing = {
            name: value
            for name, value in self._config.default_headers.items()
            if name.lower() not in present
        }
        if not missing:
            return config
        merged = dict(missing)
        merged.update(config.headers)
        return config.evolve(headers=merged)

    async def _send(
        self,
        url: str,
        config: RequestConfig,
        retries: Optional[int],
        signal: Optional[AbortSignal],
    ) -> httpx.Response:
        final_config = self.interceptors.apply_request(config)
        response = await self.retry_policy.retry(
            url, final_config, self._transport, retries=retries, signal=signal
        )
        return self.interceptors.apply_response(response)

    async def _load(
        self,
        url: str,
        config: RequestConfig,
        key: str,
        retries: Optional[int],
        signal: AbortSignal,
        cache_enabled: bool,
    ) -> Any:
        response = await self.queue.enqueue(
            lambda: self._send(url, config, retries, signal), signal
        )
        raise_for_status(response, url)
        data = decode_json(response, url)

        # No shared-state writes for an aborted operation
        signal.throw_if_aborted(url)
        if cache_enabled:
            self.cache.set(key, data)
        try:
            await self.offline.persist(key, data)
        except Exception:
            logger.warning(f"offline persist failed for {url}", exc_info=True)
        return data

    def get_stats(self) -> dict:
        """Snapshot of engine state."""
        return {
            "in_flight": self.dedup.in_flight,
            "queue_running": self.queue.running,
            "queue_pending": self.queue.pending,
            "cache": self.cache.get_stats(),
            "online": self.monitor.online,
        }

    async def aclose(self) -> None:
        """Wait for background writes, then close the transport and store."""
        await self.offline.close()
        close = getattr(self._transport, "aclose", None)
        if close is not None:
            await close()


def create_fetch_engine(
    transport: Transport,
    config: Optional[EngineConfig] = None,
    **kwargs: Any,
) -> FetchEngine:
    """Create a fetch engine."""
    return FetchEngine(transport, config, **kwargs)

