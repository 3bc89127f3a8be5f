"""
Tests for ConnectivityMonitor and OfflineFallbackStore.
"""
import logging
from typing import Any

import pytest

from fetch_resilience import (
    ConnectivityMonitor,
    ConnectivityState,
    MemoryDurableStore,
    OfflineFallbackStore,
)

from conftest import settle


class TestConnectivityMonitor:
    """Tests for connectivity transitions."""

    def test_initial_state(self) -> None:
        """Should start in the given state."""
        assert ConnectivityMonitor().online is True
        assert ConnectivityMonitor(online=False).offline is True

    def test_listeners_notified_on_transitions_only(self) -> None:
        """Should not notify when the state does not change."""
        monitor = ConnectivityMonitor()
        states = []
        monitor.on(states.append)

        monitor.set_online()
        monitor.set_offline()
        monitor.set_offline()
        monitor.set_online()

        assert states == [ConnectivityState.OFFLINE, ConnectivityState.ONLINE]

    def test_remover_and_off(self) -> None:
        """Should stop notifying removed listeners."""
        monitor = ConnectivityMonitor()
        first, second = [], []
        remove = monitor.on(first.append)
        monitor.on(second.append)

        remove()
        monitor.off(second.append)
        monitor.set_offline()

        assert first == []
        assert second == []

    def test_failing_listener_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Should keep notifying after a listener raises."""
        monitor = ConnectivityMonitor()
        states = []

        def broken(state: ConnectivityState) -> None:
            raise RuntimeError("listener bug")

        monitor.on(broken)
        monitor.on(states.append)

        with caplog.at_level(logging.WARNING, logger="fetch_resilience.connectivity"):
            monitor.set_offline()

        assert states == [ConnectivityState.OFFLINE]
        assert "connectivity listener failed" in caplog.text


class TestOfflineFallbackStore:
    """Tests for persisting and retrieving fallback records."""

    async def test_persist_and_retrieve(self) -> None:
        """Should return the most recent persisted value."""
        offline = OfflineFallbackStore()

        await offline.persist("k", {"v": 1})
        await offline.persist("k", {"v": 2})

        assert await offline.retrieve("k") == {"v": 2}

    async def test_absent_record_is_none(self) -> None:
        """Should report absence as None."""
        assert await OfflineFallbackStore().retrieve("missing") is None

    async def test_persist_nowait_then_flush(self) -> None:
        """Should complete background writes on flush()."""
        store = MemoryDurableStore()
        offline = OfflineFallbackStore(store)

        offline.persist_nowait("k", [1, 2])
        await offline.flush()

        assert await store.get_item("k") == [1, 2]

    async def test_background_failure_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Should log a failed background write instead of raising."""
        store = MemoryDurableStore()
        await store.close()
        offline = OfflineFallbackStore(store)

        with caplog.at_level(logging.WARNING, logger="fetch_resilience.offline"):
            offline.persist_nowait("k", 1)
            await offline.flush()
            await settle()

        assert "offline persist failed for k" in caplog.text


class TestSubscribe:
    """Tests for delivery on connectivity loss."""

    async def test_delivers_on_offline_transition(self) -> None:
        """Should deliver the stored record when going offline."""
        monitor = ConnectivityMonitor()
        offline = OfflineFallbackStore(monitor=monitor)
        await offline.persist("users", [{"id": 1}])
        received = []

        offline.subscribe("users", received.append)
        monitor.set_offline()
        await offline.flush()

        assert received == [[{"id": 1}]]

    async def test_delivers_immediately_when_already_offline(self) -> None:
        """Should deliver right away when subscribing offline."""
        monitor = ConnectivityMonitor(online=False)
        offline = OfflineFallbackStore(monitor=monitor)
        received = []

        offline.subscribe("missing", received.append)
        await offline.flush()

        assert received == [None]

    async def test_async_callback_and_unsubscribe(self) -> None:
        """Should await coroutine callbacks and stop after unsubscribe."""
        monitor = ConnectivityMonitor()
        offline = OfflineFallbackStore(monitor=monitor)
        await offline.persist("k", "v")
        received = []

        async def callback(value: Any) -> None:
            received.append(value)

        unsubscribe = offline.subscribe("k", callback)
        monitor.set_offline()
        await offline.flush()
        unsubscribe()
        monitor.set_online()
        monitor.set_offline()
        await offline.flush()

        assert received == ["v"]
