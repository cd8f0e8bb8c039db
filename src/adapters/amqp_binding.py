"""RabbitMQ binding adapter.

Implements the core BrokerBindingPort with pika's BlockingConnection. Each
binding owns one connection and one consumer thread; pika connections are not
thread-safe, so after ``start`` only the consumer thread touches the channel
(``close`` goes through ``add_callback_threadsafe``).
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

import pika
from pika.exceptions import AMQPError

from core.config import BackendDetails
from core.errors import BindingError
from core.models import Delivery

LOGGER = logging.getLogger(__name__)

DEFAULT_EXCHANGE = "pubsub"
DEFAULT_URL_TEMPLATE = "amqps://{login}@{rabbitprefix}.{domain}/%2f"
JOIN_TIMEOUT_SECONDS = 5.0


def broker_url(backend: BackendDetails, template: str = DEFAULT_URL_TEMPLATE) -> str:
    return template.format(
        login=backend.login,
        rabbitprefix=backend.rabbitprefix,
        domain=backend.domain,
    )


class AmqpBinding:
    """Topic-exchange subscription for one set of routing keys."""

    def __init__(
        self,
        url: str,
        scope: str,
        routing_keys: Sequence[str],
        consumer_tag: str,
        exchange: str = DEFAULT_EXCHANGE,
        connection_factory: Callable[[pika.URLParameters], pika.BlockingConnection] = pika.BlockingConnection,
    ) -> None:
        self._params = pika.URLParameters(url)
        self._scope = scope
        self._routing_keys = list(routing_keys)
        self._consumer_tag = consumer_tag
        self._exchange = exchange
        self._connection_factory = connection_factory
        self._lock = threading.Lock()
        self._callback: Optional[Callable[[Delivery], object]] = None
        self._connection = None
        self._channel = None
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._thread is not None

    @property
    def binding_keys(self) -> list[str]:
        return [f"{self._scope}.{key}" for key in self._routing_keys]

    def set_callback(self, callback: Callable[[Delivery], object]) -> None:
        self._callback = callback

    def start(self) -> None:
        """Declare, bind and start consuming. Safe to call more than once."""

        with self._lock:
            if self._thread is not None:
                return
            if self._callback is None:
                raise BindingError(f"No delivery callback set for {self._consumer_tag}")

            connection = None
            try:
                connection = self._connection_factory(self._params)
                channel = connection.channel()
                # The exchange belongs to the build service; never create it.
                channel.exchange_declare(
                    exchange=self._exchange,
                    exchange_type="topic",
                    passive=True,
                    durable=True,
                )
                result = channel.queue_declare(queue="", exclusive=True)
                queue_name = result.method.queue
                for binding_key in self.binding_keys:
                    channel.queue_bind(queue=queue_name, exchange=self._exchange, routing_key=binding_key)
                channel.basic_consume(
                    queue=queue_name,
                    on_message_callback=self._on_message,
                    auto_ack=False,
                    consumer_tag=self._consumer_tag,
                )
            except AMQPError as exc:
                if connection is not None and connection.is_open:
                    connection.close()
                raise BindingError(f"Broker setup failed for {self._consumer_tag}: {exc!r}") from exc

            self._connection = connection
            self._channel = channel
            self._thread = threading.Thread(
                target=self._consume,
                name=f"amqp-{self._consumer_tag}",
                daemon=True,
            )
            self._thread.start()
            LOGGER.info("Consuming %s from %s", ", ".join(self.binding_keys), self._exchange)

    def _on_message(self, channel, method, properties, body: bytes) -> None:
        delivery_tag = method.delivery_tag
        delivery = Delivery(
            routing_key=method.routing_key,
            body=body,
            ack=lambda: channel.basic_ack(delivery_tag=delivery_tag),
        )
        self._callback(delivery)

    def _consume(self) -> None:
        try:
            self._channel.start_consuming()
        except AMQPError:
            LOGGER.exception("Consumer %s stopped, will rebind on next start", self._consumer_tag)
            self._reset_after_failure()

    def _reset_after_failure(self) -> None:
        with self._lock:
            # close() may already have taken over this connection.
            if self._thread is not threading.current_thread():
                return
            connection = self._connection
            self._connection = self._channel = self._thread = None
        if connection is not None and connection.is_open:
            connection.close()

    def close(self) -> None:
        with self._lock:
            connection, channel, thread = self._connection, self._channel, self._thread
            self._connection = self._channel = self._thread = None

        if connection is None:
            return
        if connection.is_open:
            connection.add_callback_threadsafe(channel.stop_consuming)
        thread.join(timeout=JOIN_TIMEOUT_SECONDS)
        if connection.is_open:
            connection.close()
        LOGGER.info("Closed broker binding %s", self._consumer_tag)


def make_binding_factory(
    url_template: str = DEFAULT_URL_TEMPLATE,
    exchange: str = DEFAULT_EXCHANGE,
) -> Callable[[BackendDetails, Sequence[str], str], AmqpBinding]:
    """Return a factory that builds one binding per (backend, domain)."""

    def factory(backend: BackendDetails, routing_keys: Sequence[str], consumer_tag: str) -> AmqpBinding:
        return AmqpBinding(
            url=broker_url(backend, url_template),
            scope=backend.rabbitscope,
            routing_keys=routing_keys,
            consumer_tag=consumer_tag,
            exchange=exchange,
        )

    return factory
