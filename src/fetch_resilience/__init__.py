"""
Resilient fetch engine: request deduplication, interceptor pipelines, retry
with exponential backoff, bounded-concurrency queuing, TTL response caching
and an offline fallback store, around an injected transport.
"""
from .types import (
    RequestConfig,
    RequestDescriptor,
    CacheEntry,
    InFlightEntry,
    QueueTask,
    RequestInterceptor,
    ResponseInterceptor,
    Transport,
    DurableStore,
    FetchEventType,
    FetchEvent,
    FetchEventListener,
    ConnectivityState,
    ConnectivityListener,
)
from .errors import (
    FetchError,
    TransportError,
    FetchAbortedError,
    HTTPStatusError,
    SerializationError,
    RateLimitError,
    raise_for_status,
)
from .abort import AbortController, AbortSignal, sleep
from .config import (
    RetryConfig,
    QueueConfig,
    CacheConfig,
    RateLimitConfig,
    DedupConfig,
    EngineConfig,
    DEFAULT_RETRY_CONFIG,
    DEFAULT_QUEUE_CONFIG,
    DEFAULT_CACHE_CONFIG,
    DEFAULT_DEDUP_CONFIG,
    calculate_backoff_delay,
)
from .identity import generate_identity_key
from .interceptors import InterceptorPipeline
from .dedup import Deduplicator, create_deduplicator
from .retry import RetryPolicy, RetryResult, create_retry_policy
from .queue import ConcurrencyQueue, create_concurrency_queue
from .cache import CacheStore, create_cache_store
from .rate_limiter import RateLimiter, create_rate_limiter
from .connectivity import ConnectivityMonitor
from .offline import OfflineFallbackStore
from .stores import (
    MemoryInFlightStore,
    MemoryDurableStore,
    RedisDurableStore,
    create_memory_durable_store,
    create_redis_store,
    create_redis_store_from_url,
)
from .transport import HttpxTransport
from .engine import FetchEngine, create_fetch_engine, decode_json
from .settings import EngineSettings, resolve_settings
from .factory import create_engine
from .normalize import normalize_data, NormalizedData


__all__ = [
    # Types
    "RequestConfig",
    "RequestDescriptor",
    "CacheEntry",
    "InFlightEntry",
    "QueueTask",
    "RequestInterceptor",
    "ResponseInterceptor",
    "Transport",
    "DurableStore",
    "FetchEventType",
    "FetchEvent",
    "FetchEventListener",
    "ConnectivityState",
    "ConnectivityListener",
    # Errors
    "FetchError",
    "TransportError",
    "FetchAbortedError",
    "HTTPStatusError",
    "SerializationError",
    "RateLimitError",
    "raise_for_status",
    # Abort
    "AbortController",
    "AbortSignal",
    "sleep",
    # Config
    "RetryConfig",
    "QueueConfig",
    "CacheConfig",
    "RateLimitConfig",
    "DedupConfig",
    "EngineConfig",
    "DEFAULT_RETRY_CONFIG",
    "DEFAULT_QUEUE_CONFIG",
    "DEFAULT_CACHE_CONFIG",
    "DEFAULT_DEDUP_CONFIG",
    "calculate_backoff_delay",
    "generate_identity_key",
    # Components
    "InterceptorPipeline",
    "Deduplicator",
    "create_deduplicator",
    "RetryPolicy",
    "RetryResult",
    "create_retry_policy",
    "ConcurrencyQueue",
    "create_concurrency_queue",
    "CacheStore",
    "create_cache_store",
    "RateLimiter",
    "create_rate_limiter",
    "ConnectivityMonitor",
    "OfflineFallbackStore",
    # Stores
    "MemoryInFlightStore",
    "MemoryDurableStore",
    "RedisDurableStore",
    "create_memory_durable_store",
    "create_redis_store",
    "create_redis_store_from_url",
    # Engine
    "HttpxTransport",
    "FetchEngine",
    "create_fetch_engine",
    "decode_json",
    "EngineSettings",
    "resolve_settings",
    "create_engine",
    "normalize_data",
    "NormalizedData",
]

__version__ = "1.0.0"
