"""
Environment-facing engine settings.
"""
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .config import (
    CacheConfig,
    EngineConfig,
    QueueConfig,
    RateLimitConfig,
    RetryConfig,
)

logger = logging.getLogger("fetch_resilience.settings")

ENV_PREFIX = "FETCH_RESILIENCE_"


class EngineSettings(BaseModel):
    """
    Settings resolvable from overrides and environment variables.
    """
    base_url: str = ""
    concurrency: int = Field(default=3, ge=1)
    retries: int = Field(default=3, ge=0)
    backoff_seconds: float = Field(default=0.3, ge=0)
    max_backoff_seconds: Optional[float] = None
    retry_on_status: List[int] = Field(default_factory=list)
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_enabled: bool = True
    rate_limit: Optional[int] = Field(default=None, ge=1)
    rate_limit_interval_seconds: float = Field(default=1.0, gt=0)
    redis_url: Optional[str] = None
    offline_key_prefix: str = "offline:"
    timeout_seconds: float = Field(default=10.0, gt=0)
    default_headers: Dict[str, str] = Field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )

    def to_engine_config(self) -> EngineConfig:
        """Build the dataclass configuration consumed by FetchEngine."""
        rate_limit = None
        if self.rate_limit is not None:
            rate_limit = RateLimitConfig(
                limit=self.rate_limit,
                interval_seconds=self.rate_limit_interval_seconds,
            )
        return EngineConfig(
            retry=RetryConfig(
                retries=self.retries,
                backoff_seconds=self.backoff_seconds,
                max_backoff_seconds=self.max_backoff_seconds,
                retry_on_status=list(self.retry_on_status),
            ),
            queue=QueueConfig(concurrency=self.concurrency),
            cache=CacheConfig(ttl_seconds=self.cache_ttl_seconds, enabled=self.cache_enabled),
            rate_limit=rate_limit,
            default_headers=dict(self.default_headers),
        )


# Fields that may be set from FETCH_RESILIENCE_<NAME>
_ENV_FIELDS = [
    "base_url",
    "concurrency",
    "retries",
    "backoff_seconds",
    "max_backoff_seconds",
    "retry_on_status",
    "cache_ttl_seconds",
    "cache_enabled",
    "rate_limit",
    "rate_limit_interval_seconds",
    "redis_url",
    "offline_key_prefix",
    "timeout_seconds",
]


def _parse_env_value(name: str, raw: str) -> Any:
    if name == "retry_on_status":
        return [part.strip() for part in raw.split(",") if part.strip()]
    if name == "cache_enabled":
        return raw.strip().lower() not in ("0", "false", "no", "off")
    return raw


def resolve_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineSettings:
    """
    Resolve engine settings.

    Precedence (Waterfall):
    1. overrides
    2. FETCH_RESILIENCE_* environment variables
    3. EngineSettings defaults

    Args:
        overrides: Explicit values (highest priority)
        environ: Environment mapping, os.environ by default

    Returns:
        Validated settings

    Raises:
        pydantic.ValidationError: a value has the wrong type or range
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    for name in _ENV_FIELDS:
        raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw != "":
            logger.debug(f"resolve_settings: {name} from {ENV_PREFIX}{name.upper()}")
            values[name] = _parse_env_value(name, raw)

    if overrides:
        for name, value in overrides.items():
            logger.debug(f"resolve_settings: {name} from override")
            values[name] = value

    return EngineSettings(**values)
