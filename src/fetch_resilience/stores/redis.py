"""
Redis durable store implementation
Suitable for offline records shared across processes
"""
import json
from typing import Any, Optional, Protocol

from redis import asyncio as aioredis

from ..errors import SerializationError
from ..types import DurableStore


class RedisClientProtocol(Protocol):
    """Protocol for Redis client (compatible with redis-py async)"""

    async def get(self, name: str) -> Any:
        ...

    async def set(self, name: str, value: Any) -> Any:
        ...

    async def delete(self, *names: str) -> int:
        ...

    async def scan_iter(self, match: Optional[str] = None) -> Any:
        ...

    async def aclose(self) -> None:
        ...


class RedisDurableStore(DurableStore):
    """
    Redis implementation of DurableStore.
    Values are stored as JSON strings under a key prefix.
    """

    def __init__(
        self, client: RedisClientProtocol, key_prefix: str = "offline:"
    ) -> None:
        """
        Create a new RedisDurableStore.

        Args:
            client: Redis client (async redis-py instance)
            key_prefix: Prefix for all keys. Default: 'offline:'
        """
        self._client = client
        self._key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        """Get the full key with prefix"""
        return f"{self._key_prefix}{key}"

    async def get_item(self, key: str) -> Optional[Any]:
        raw = await self._client.get(self._get_key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as error:
            raise SerializationError(f"Corrupt offline record for {key!r}") from error

    async def set_item(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as error:
            raise SerializationError(f"Offline record for {key!r} is not JSON serializable") from error
        await self._client.set(self._get_key(key), payload)

    async def remove_item(self, key: str) -> None:
        await self._client.delete(self._get_key(key))

    async def clear(self) -> None:
        """Delete every key under the prefix"""
        keys = [key async for key in self._client.scan_iter(match=f"{self._key_prefix}*")]
        if keys:
            await self._client.delete(*keys)

    async def close(self) -> None:
        """Close the store and cleanup resources"""
        await self._client.aclose()


def create_redis_store(
    client: RedisClientProtocol, key_prefix: str = "offline:"
) -> RedisDurableStore:
    """
    Create a new RedisDurableStore instance.

    Args:
        client: Redis client (async redis-py instance)
        key_prefix: Prefix for all keys

    Returns:
        RedisDurableStore instance
    """
    return RedisDurableStore(client, key_prefix)


def create_redis_store_from_url(url: str, key_prefix: str = "offline:") -> RedisDurableStore:
    """
    Create a RedisDurableStore connected to a redis URL.

    Args:
        url: Redis URL, e.g. redis://localhost:6379/0
        key_prefix: Prefix for all keys
    """
    return RedisDurableStore(aioredis.from_url(url, decode_responses=True), key_prefix)
