"""
Memory store implementations for fetch_resilience.
"""
import copy
from typing import Any, Dict, Optional

from ..types import DurableStore, InFlightEntry


class MemoryInFlightStore:
    """
    In-memory map of in-flight operations keyed by identity key.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[str, InFlightEntry] = {}

    def get(self, key: str) -> Optional[InFlightEntry]:
        """Get an in-flight entry by identity key."""
        return self._in_flight.get(key)

    def set(self, key: str, entry: InFlightEntry) -> None:
        """Register an in-flight entry."""
        self._in_flight[key] = entry

    def delete(self, key: str) -> bool:
        """Remove an in-flight entry."""
        if key in self._in_flight:
            del self._in_flight[key]
            return True
        return False

    def has(self, key: str) -> bool:
        """Check if a key is in-flight."""
        return key in self._in_flight

    def size(self) -> int:
        """Get current number of in-flight entries."""
        return len(self._in_flight)

    def clear(self) -> None:
        """Clear all in-flight entries."""
        self._in_flight.clear()


class MemoryDurableStore(DurableStore):
    """
    Dict-backed DurableStore.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored records, matching the copy semantics of a real durable backend.
    """

    def __init__(self) -> None:
        self._items: Dict[str, Any] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Store has been closed")

    async def get_item(self, key: str) -> Optional[Any]:
        self._check_open()
        if key not in self._items:
            return None
        return copy.deepcopy(self._items[key])

    async def set_item(self, key: str, value: Any) -> None:
        self._check_open()
        self._items[key] = copy.deepcopy(value)

    async def remove_item(self, key: str) -> None:
        self._check_open()
        self._items.pop(key, None)

    async def clear(self) -> None:
        self._items.clear()

    async def close(self) -> None:
        self._closed = True
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


def create_memory_durable_store() -> MemoryDurableStore:
    """Create a memory durable store."""
    return MemoryDurableStore()
