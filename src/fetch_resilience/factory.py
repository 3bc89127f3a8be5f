"""
Factory functions for creating configured engines
"""
from typing import Any, Mapping, Optional

import httpx

from .connectivity import ConnectivityMonitor
from .engine import FetchEngine
from .settings import EngineSettings, resolve_settings
from .stores.redis import create_redis_store_from_url
from .transport import HttpxTransport
from .types import DurableStore


def create_engine(
    settings: Optional[EngineSettings] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    durable_store: Optional[DurableStore] = None,
    monitor: Optional[ConnectivityMonitor] = None,
    **client_kwargs: Any,
) -> FetchEngine:
    """
    Create a FetchEngine backed by httpx.

    Args:
        settings: Resolved settings; resolved from overrides/environment if omitted
        overrides: Explicit setting values used when settings is omitted
        client: Existing httpx.AsyncClient to send through
        durable_store: Offline store backend; Redis when redis_url is set,
            in-memory otherwise
        monitor: Connectivity monitor
        **client_kwargs: Additional arguments for httpx.AsyncClient

    Returns:
        Configured engine

    Example:
        engine = create_engine(overrides={"base_url": "https://api.example.com"})
        user = await engine.fetch_data("/users/1")
        await engine.aclose()
    """
    settings = settings or resolve_settings(overrides)

    transport = HttpxTransport(
        client,
        base_url=settings.base_url,
        timeout=settings.timeout_seconds,
        **client_kwargs,
    )

    if durable_store is None and settings.redis_url:
        durable_store = create_redis_store_from_url(
            settings.redis_url, settings.offline_key_prefix
        )

    return FetchEngine(
        transport,
        settings.to_engine_config(),
        durable_store=durable_store,
        monitor=monitor,
    )
