"""Ports (interfaces) used by the core.

Ports define the minimal contracts for chat and broker adapters so that the
core can be reused with different backends.
"""

from __future__ import annotations

from typing import Callable, Protocol

from core.models import Delivery, Notification


class ChatSenderPort(Protocol):
    """Send capability handed to command handlers and dispatchers.

    Implementations must be safe to call from any thread and must not block
    on network I/O for long; the dispatcher calls it from broker threads.
    """

    def send(self, room: str, message: Notification) -> None:
        ...


class BrokerBindingPort(Protocol):
    """Broker consumer setup for one domain on one backend."""

    @property
    def started(self) -> bool:
        ...

    def set_callback(self, callback: Callable[[Delivery], None]) -> None:
        ...

    def start(self) -> None:
        ...

    def close(self) -> None:
        ...
