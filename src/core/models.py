"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class ChatMessage:
    """Minimal incoming chat message used by the command handlers."""

    room: str
    body: str


@dataclass(frozen=True)
class Notification:
    """A message rendered twice: plain text and HTML."""

    plain: str
    html: str


@dataclass(frozen=True)
class Delivery:
    """One broker delivery, detached from the broker client types."""

    routing_key: str
    body: bytes
    ack: Callable[[], None]
