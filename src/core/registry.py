"""Subscription registry (core domain).

The registry is the only mutable state shared between the chat command path
and the broker delivery threads. Every public method takes the same lock for
its whole duration and never performs I/O while holding it; callers get
copies, never the underlying map.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, FrozenSet, Generic, Iterator, List, Set, TypeVar

from core.errors import InternalError
from core.keys import DomainKey

LOGGER = logging.getLogger(__name__)

K = TypeVar("K", bound=DomainKey)

# Upper bound for waiting on the registry lock. Critical sections are tiny, so
# hitting this means something is badly wrong with the lock holder.
LOCK_TIMEOUT_SECONDS = 5.0


class SubscriptionRegistry(Generic[K]):
    """Many-to-many mapping between keys and chat rooms for one backend domain."""

    def __init__(
        self,
        backend_domain: str,
        item_label: str,
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self._backend_domain = backend_domain
        self._item_label = item_label
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._subscriptions: Dict[K, Set[str]] = {}

    @property
    def backend_domain(self) -> str:
        return self._backend_domain

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise InternalError(f"Subscription registry for {self._backend_domain} is unavailable")
        try:
            yield
        finally:
            self._lock.release()

    def _describe(self, key: K) -> str:
        return f"{self._item_label} {key.encode()} on {self._backend_domain}"

    def subscribe(self, key: K, room: str) -> str:
        """Add ``room`` to the rooms notified about ``key``."""

        with self._locked():
            self._subscriptions.setdefault(key, set()).add(room)
        LOGGER.info("Room %s subscribed to %s", room, self._describe(key))
        return f"Subscribed to {self._describe(key)}"

    def unsubscribe(self, key: K, room: str) -> str:
        """Remove ``room`` from ``key``; dropping the key once nobody is left."""

        with self._locked():
            rooms = self._subscriptions.get(key)
            was_subscribed = rooms is not None and room in rooms
            if was_subscribed:
                rooms.discard(room)
                if not rooms:
                    del self._subscriptions[key]
        if not was_subscribed:
            return f"This room was not subscribed to {self._describe(key)}"
        LOGGER.info("Room %s unsubscribed from %s", room, self._describe(key))
        return f"Unsubscribed from {self._describe(key)}"

    def list(self, room: str) -> List[K]:
        """Return every key ``room`` is subscribed to, sorted by encoded form."""

        with self._locked():
            keys = [key for key, rooms in self._subscriptions.items() if room in rooms]
        return sorted(keys, key=lambda key: key.encode())

    def lookup(self, key: K) -> FrozenSet[str]:
        """Return a snapshot of the rooms subscribed to ``key``."""

        with self._locked():
            return frozenset(self._subscriptions.get(key, ()))
