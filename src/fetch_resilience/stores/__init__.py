"""
Store implementations for fetch_resilience.
"""
from .memory import (
    MemoryInFlightStore,
    MemoryDurableStore,
    create_memory_durable_store,
)
from .redis import (
    RedisClientProtocol,
    RedisDurableStore,
    create_redis_store,
    create_redis_store_from_url,
)

__all__ = [
    "MemoryInFlightStore",
    "MemoryDurableStore",
    "create_memory_durable_store",
    "RedisClientProtocol",
    "RedisDurableStore",
    "create_redis_store",
    "create_redis_store_from_url",
]
