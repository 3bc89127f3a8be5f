"""
Tests for durable store implementations.
"""
import json
from typing import AsyncIterator, Dict, Optional

import pytest

from fetch_resilience import (
    MemoryDurableStore,
    RedisDurableStore,
    SerializationError,
    create_memory_durable_store,
    create_redis_store,
)
from fetch_resilience.stores import MemoryInFlightStore


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client surface used by the store."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.closed = False

    async def get(self, name: str) -> Optional[str]:
        return self.data.get(name)

    async def set(self, name: str, value: str) -> bool:
        self.data[name] = value
        return True

    async def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match: Optional[str] = None) -> AsyncIterator[str]:
        prefix = (match or "*").rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def aclose(self) -> None:
        self.closed = True


class TestMemoryDurableStore:
    """Tests for MemoryDurableStore."""

    async def test_set_get_remove(self) -> None:
        """Should store, read back and remove records."""
        store = create_memory_durable_store()

        await store.set_item("k", {"id": 1})
        assert await store.get_item("k") == {"id": 1}

        await store.remove_item("k")
        assert await store.get_item("k") is None

    async def test_values_are_copied(self) -> None:
        """Should isolate stored records from caller mutation."""
        store = MemoryDurableStore()
        value = {"tags": ["a"]}

        await store.set_item("k", value)
        value["tags"].append("b")
        read = await store.get_item("k")
        read["tags"].append("c")

        assert await store.get_item("k") == {"tags": ["a"]}

    async def test_closed_store_rejects_access(self) -> None:
        """Should raise after close()."""
        store = MemoryDurableStore()
        await store.close()

        with pytest.raises(RuntimeError):
            await store.get_item("k")


class TestMemoryInFlightStore:
    """Tests for MemoryInFlightStore."""

    def test_delete_missing_key(self) -> None:
        """Should report whether a key was removed."""
        store = MemoryInFlightStore()

        assert store.delete("nope") is False
        assert store.size() == 0


class TestRedisDurableStore:
    """Tests for RedisDurableStore."""

    async def test_json_round_trip_under_prefix(self) -> None:
        """Should store JSON under the key prefix."""
        client = FakeRedis()
        store = RedisDurableStore(client, key_prefix="offline:")

        await store.set_item("users", [{"id": 1}])

        assert json.loads(client.data["offline:users"]) == [{"id": 1}]
        assert await store.get_item("users") == [{"id": 1}]

    async def test_missing_key_is_none(self) -> None:
        """Should report absence as None."""
        store = create_redis_store(FakeRedis())

        assert await store.get_item("missing") is None

    async def test_corrupt_record_raises(self) -> None:
        """Should raise SerializationError for undecodable records."""
        client = FakeRedis()
        client.data["offline:k"] = "{not json"
        store = RedisDurableStore(client)

        with pytest.raises(SerializationError):
            await store.get_item("k")

    async def test_unserializable_value_raises(self) -> None:
        """Should raise SerializationError for values JSON cannot encode."""
        store = RedisDurableStore(FakeRedis())

        with pytest.raises(SerializationError):
            await store.set_item("k", {"when": object()})

    async def test_clear_only_touches_prefix(self) -> None:
        """Should delete keys under the prefix and keep others."""
        client = FakeRedis()
        client.data["other:x"] = "1"
        store = RedisDurableStore(client, key_prefix="app:")
        await store.set_item("a", 1)
        await store.set_item("b", 2)

        await store.clear()

        assert client.data == {"other:x": "1"}

    async def test_remove_and_close(self) -> None:
        """Should delete a record and close the client."""
        client = FakeRedis()
        store = RedisDurableStore(client)
        await store.set_item("k", "v")

        await store.remove_item("k")
        await store.close()

        assert client.data == {}
        assert client.closed is True
