"""
Connectivity state fed by "online" and "offline" signals.
"""
import logging
from typing import Callable, List

from .types import ConnectivityListener, ConnectivityState

logger = logging.getLogger("fetch_resilience.connectivity")


class ConnectivityMonitor:
    """
    Tracks whether the network is reachable.

    The host application forwards its platform signals by calling
    set_online() / set_offline(). Listeners are notified on transitions only.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: List[ConnectivityListener] = []

    @property
    def online(self) -> bool:
        return self._online

    @property
    def offline(self) -> bool:
        return not self._online

    def set_online(self) -> None:
        """Signal that connectivity became available."""
        self._transition(True)

    def set_offline(self) -> None:
        """Signal that connectivity was lost."""
        self._transition(False)

    def _transition(self, online: bool) -> None:
        if self._online == online:
            return
        self._online = online
        state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        logger.info(f"connectivity: {state.value}")
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.warning(f"connectivity listener failed on {state.value}", exc_info=True)

    def on(self, listener: ConnectivityListener) -> Callable[[], None]:
        """
        Add a listener.

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def off(self, listener: ConnectivityListener) -> None:
        """Remove a listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)
