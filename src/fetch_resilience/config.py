"""
Configuration for fetch_resilience components.
"""
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple, Type

import httpx

from .errors import TransportError
from .types import RequestConfig


@dataclass
class RetryConfig:
    """Retry configuration"""

    retries: int = 3
    """Maximum number of retries after the first attempt. Default: 3"""

    backoff_seconds: float = 0.3
    """Delay before the first retry (seconds). Default: 0.3"""

    factor: float = 2.0
    """Multiplier applied to the delay after every retry. Default: 2.0"""

    max_backoff_seconds: Optional[float] = None
    """Optional cap on a single delay (seconds). Default: no cap"""

    retry_on_errors: Tuple[Type[BaseException], ...] = (
        TransportError,
        httpx.TransportError,
        ConnectionError,
        TimeoutError,
    )
    """Transport-level error types that trigger a retry"""

    retry_on_status: List[int] = field(default_factory=list)
    """HTTP status codes mapped to a retryable failure (opt-in). Default: none"""


@dataclass
class QueueConfig:
    """Concurrency queue configuration"""

    concurrency: int = 3
    """Maximum number of tasks running at once. Default: 3"""


@dataclass
class CacheConfig:
    """Response cache configuration"""

    ttl_seconds: float = 300.0
    """Time an entry stays fresh (seconds). Default: 5 minutes"""

    enabled: bool = True
    """Whether fetch_data consults and fills the cache."""


@dataclass
class RateLimitConfig:
    """Fixed-window request budget"""

    limit: int = 5
    """Requests allowed per window."""

    interval_seconds: float = 1.0
    """Window length (seconds)."""


@dataclass
class DedupConfig:
    """Deduplication configuration"""

    enabled: bool = True
    """Whether identical in-flight requests are collapsed."""

    key_generator: Optional[Callable[[str, RequestConfig], str]] = None
    """Custom identity key generator taking (url, RequestConfig)."""


@dataclass
class EngineConfig:
    """Combined engine configuration."""

    retry: Optional[RetryConfig] = None
    queue: Optional[QueueConfig] = None
    cache: Optional[CacheConfig] = None
    dedup: Optional[DedupConfig] = None

    rate_limit: Optional[RateLimitConfig] = None
    """Request budget; None disables rate limiting."""

    default_headers: Dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )
    """Headers merged under caller headers by fetch_data."""


DEFAULT_RETRY_CONFIG = RetryConfig()
DEFAULT_QUEUE_CONFIG = QueueConfig()
DEFAULT_CACHE_CONFIG = CacheConfig()
DEFAULT_DEDUP_CONFIG = DedupConfig()


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay before the retry that follows a failed attempt.

    delay = backoff * factor ^ attempt, no jitter, optionally capped.

    Args:
        attempt: The failed attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = config.backoff_seconds * (config.factor ** attempt)
    if config.max_backoff_seconds is not None:
        delay = min(delay, config.max_backoff_seconds)
    return delay


def merge_retry_config(config: Optional[RetryConfig] = None) -> RetryConfig:
    """Merge user config with defaults."""
    if config is None:
        return replace(DEFAULT_RETRY_CONFIG, retry_on_status=[])
    if config.retries < 0:
        raise ValueError(f"retries must be >= 0, got {config.retries}")
    if config.backoff_seconds < 0:
        raise ValueError(f"backoff_seconds must be >= 0, got {config.backoff_seconds}")
    if config.factor <= 1:
        raise ValueError(f"factor must be > 1, got {config.factor}")
    return config


def merge_queue_config(config: Optional[QueueConfig] = None) -> QueueConfig:
    """Merge user config with defaults."""
    if config is None:
        return QueueConfig(concurrency=DEFAULT_QUEUE_CONFIG.concurrency)
    if config.concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {config.concurrency}")
    return config


def merge_cache_config(config: Optional[CacheConfig] = None) -> CacheConfig:
    """Merge user config with defaults."""
    if config is None:
        return CacheConfig(
            ttl_seconds=DEFAULT_CACHE_CONFIG.ttl_seconds,
            enabled=DEFAULT_CACHE_CONFIG.enabled,
        )
    return config


def merge_dedup_config(config: Optional[DedupConfig] = None) -> DedupConfig:
    """Merge user config with defaults."""
    if config is None:
        return DedupConfig(
            enabled=DEFAULT_DEDUP_CONFIG.enabled,
            key_generator=DEFAULT_DEDUP_CONFIG.key_generator,
        )
    return config
