"""Broker delivery dispatch (core domain).

The dispatcher enforces a strict order for each delivery:
1) Decode the JSON payload into the domain's event type
2) Classify the routing key into a change type
3) Snapshot the rooms subscribed to the event's key
4) Fast-exit when nobody is subscribed
5) Render once and fan out to every room
6) Acknowledge, exactly once, whatever happened above

Undecodable or unclassifiable deliveries are acknowledged and dropped so a
poison message cannot be redelivered forever.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, Iterable, Protocol, TypeVar

from core.errors import DomainError, InternalError
from core.events import RoutingRule, classify, load_payload
from core.keys import DomainKey
from core.models import Delivery, Notification
from core.ports import ChatSenderPort
from core.registry import SubscriptionRegistry

LOGGER = logging.getLogger(__name__)


class KeyedEvent(Protocol):
    @property
    def key(self) -> DomainKey:
        ...


E = TypeVar("E", bound=KeyedEvent)


class Dispatcher(Generic[E]):
    """Delivery callback for one domain on one backend."""

    def __init__(
        self,
        name: str,
        rules: Iterable[RoutingRule],
        decode_event: Callable[[dict], E],
        render: Callable[[E, str], Notification],
        registry: SubscriptionRegistry,
        sender: ChatSenderPort,
    ) -> None:
        self._name = name
        self._rules = tuple(rules)
        self._decode_event = decode_event
        self._render = render
        self._registry = registry
        self._sender = sender

    def __call__(self, delivery: Delivery) -> int:
        """Handle one delivery and return the number of rooms notified."""

        try:
            return self._dispatch(delivery)
        except DomainError as exc:
            LOGGER.warning("Dropping %s event (%s): %s", self._name, delivery.routing_key, exc)
        except InternalError:
            LOGGER.error("Registry unavailable, skipping %s event (%s)", self._name, delivery.routing_key)
        except Exception:
            LOGGER.exception("Error while dispatching %s event (%s)", self._name, delivery.routing_key)
        finally:
            delivery.ack()
        return 0

    def _dispatch(self, delivery: Delivery) -> int:
        event = self._decode_event(load_payload(delivery.body))
        change_type = classify(delivery.routing_key, self._rules)

        rooms = self._registry.lookup(event.key)
        if not rooms:
            return 0

        notification = self._render(event, change_type)
        LOGGER.info("%s: %s", self._name, notification.plain)

        sent = 0
        for room in sorted(rooms):
            try:
                self._sender.send(room, notification)
            except Exception:
                LOGGER.exception("Failed to notify %s about %s", room, event.key.encode())
                continue
            sent += 1
        return sent
