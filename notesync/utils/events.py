import logging
import threading
from collections.abc import Callable
from typing import Any, Dict, Hashable, Set

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Subscription:
    """Cancellation handle returned by ListenerRegistry.subscribe."""

    def __init__(self, registry: "ListenerRegistry", key: Hashable, listener: Listener):
        self._registry = registry
        self._key = key
        self._listener = listener
        self._cancelled = False

    def cancel(self) -> None:
        """Stop receiving updates. Only the first call has an effect."""
        if self._cancelled:
            logger.warning(f"[Listeners] Subscription to {self._key} cancelled twice")
            return
        self._cancelled = True
        self._registry._remove(self._key, self._listener)


class ListenerRegistry:
    """Thread-safe fan-out of change notifications keyed by channel."""

    def __init__(self):
        # Maps a channel key to the set of listeners registered on it
        self.listeners: Dict[Hashable, Set[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, key: Hashable, listener: Listener) -> Subscription:
        """Register a listener on a channel."""
        with self._lock:
            if key not in self.listeners:
                self.listeners[key] = set()
            self.listeners[key].add(listener)
            count = len(self.listeners[key])

        logger.info(f"[Listeners] Subscribed to {key}. Active listeners: {count}")
        return Subscription(self, key, listener)

    def _remove(self, key: Hashable, listener: Listener) -> None:
        with self._lock:
            if key in self.listeners:
                self.listeners[key].discard(listener)
                if not self.listeners[key]:
                    del self.listeners[key]
        logger.info(f"[Listeners] Unsubscribed from {key}.")

    def has_listeners(self, key: Hashable) -> bool:
        with self._lock:
            return bool(self.listeners.get(key))

    def count(self, key: Hashable | None = None) -> int:
        """Number of listeners on one channel, or on all channels."""
        with self._lock:
            if key is not None:
                return len(self.listeners.get(key, ()))
            return sum(len(listeners) for listeners in self.listeners.values())

    def broadcast(self, key: Hashable, payload: Any) -> None:
        """Deliver a payload to every listener on a channel."""
        with self._lock:
            listeners = list(self.listeners.get(key, ()))

        if not listeners:
            logger.debug(f"[Listeners] No listeners on {key}")
            return

        logger.debug(f"[Listeners] Broadcasting to {key} ({len(listeners)} listeners)")
        for listener in listeners:
            listener(payload)
