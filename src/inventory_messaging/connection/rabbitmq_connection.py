"""RabbitMQ connection management."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable, Deque, Iterator, List, Optional, Type

import pika
from pika.adapters.blocking_connection import BlockingChannel, BlockingConnection

from inventory_messaging.contracts import IBrokerConnection
from inventory_messaging.envelope import DeliveryOutcome
from inventory_messaging.errors import (
    BrokerConnectionError,
    PublishError,
    ShutdownError,
    SubscriptionError,
)
from inventory_messaging.topology import BrokerTopology, QueueConfig


@dataclass(frozen=True)
class BrokerErrorEvent:
    """An asynchronous error reported by the broker for one session."""

    vhost: str
    connection_url: str
    message: str
    fatal: bool = False


class RabbitMQConnection(IBrokerConnection):
    """Manages the lifecycle of a single blocking RabbitMQ session.

    The session is opened once with :meth:`open` and closed once with :meth:`close`;
    a second close is a no-op. Publications that require broker confirms share a
    dedicated confirm channel, everything else uses the main channel.
    """

    ERROR_POLL_INTERVAL = 1.0
    ERROR_BUFFER_SIZE = 100

    def __init__(self, topology: BrokerTopology, *, logger: Optional[logging.Logger] = None) -> None:
        self.topology = topology
        self._parameters = topology.connection.to_parameters()
        self.connection: Optional[BlockingConnection] = None
        self.channel: Optional[BlockingChannel] = None
        self.confirm_channel: Optional[BlockingChannel] = None
        self.logger = logger or logging.getLogger(__name__)

        self._closed = False
        self._stop_requested = False
        self._pending_errors: Deque[BrokerErrorEvent] = deque(maxlen=self.ERROR_BUFFER_SIZE)
        self._error_listeners: List[Callable[[BrokerErrorEvent], None]] = []
        self._error_stream: Optional[Iterator[BrokerErrorEvent]] = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def open(self) -> BlockingChannel:
        if self._closed:
            raise BrokerConnectionError("RabbitMQ connection has already been closed.")
        if self.channel is not None and not self.channel.is_closed:
            return self.channel

        url = self.topology.connection.display_url
        self.logger.info("Connecting to RabbitMQ at %s", url)
        try:
            connection = pika.BlockingConnection(self._parameters)
            self.connection = connection
            connection.add_on_connection_blocked_callback(self._on_connection_blocked)
            connection.add_on_connection_unblocked_callback(self._on_connection_unblocked)
            channel = connection.channel()
            self.channel = channel
            channel.add_on_return_callback(self._on_message_returned)
            for queue_config in self.topology.queues.values():
                self._declare_queue(channel, queue_config)
        except pika.exceptions.AMQPError as exc:
            self.logger.error("Failed to establish RabbitMQ connection: %s", exc)
            raise BrokerConnectionError(f"Failed to connect to RabbitMQ at {url}: {exc}") from exc

        self.logger.info("Connected to RabbitMQ.")
        return channel

    def _declare_queue(self, channel: BlockingChannel, queue_config: QueueConfig) -> None:
        channel.queue_declare(
            queue=queue_config.queue_name,
            durable=queue_config.durable,
            arguments=dict(queue_config.arguments) or None,
        )
        if queue_config.exchange:
            channel.queue_bind(
                queue=queue_config.queue_name,
                exchange=queue_config.exchange,
                routing_key=queue_config.routing_key or queue_config.queue_name,
            )
        self.logger.debug("Declared queue %s", queue_config.queue_name)

    def publication_channel(self, publication_name: str) -> BlockingChannel:
        publication = self.topology.publication(publication_name)
        if not publication.confirm:
            return self._require_channel()

        if self.confirm_channel is None or self.confirm_channel.is_closed:
            connection = self._require_connection()
            try:
                confirm_channel = connection.channel()
                confirm_channel.confirm_delivery()
                self.confirm_channel = confirm_channel
            except pika.exceptions.AMQPError as exc:
                raise PublishError(f"Failed to open confirm channel: {exc}") from exc
            self.logger.debug("Opened confirm channel for publication %s", publication_name)

        return self.confirm_channel

    def consumer_channel(self) -> BlockingChannel:
        return self._require_channel()

    def _require_connection(self) -> BlockingConnection:
        if self._closed or self.connection is None or self.connection.is_closed:
            raise BrokerConnectionError("RabbitMQ connection is not open.")
        return self.connection

    def _require_channel(self) -> BlockingChannel:
        self._require_connection()
        if self.channel is None or self.channel.is_closed:
            raise BrokerConnectionError("RabbitMQ channel is not open.")
        return self.channel

    def settle(self, delivery_tag: int, outcome: DeliveryOutcome) -> None:
        channel = self._require_channel()
        try:
            if outcome is DeliveryOutcome.ACKNOWLEDGED:
                channel.basic_ack(delivery_tag=delivery_tag)
            else:
                channel.basic_nack(delivery_tag=delivery_tag, requeue=outcome.requeue)
        except pika.exceptions.AMQPError as exc:
            raise SubscriptionError(
                f"Failed to settle delivery {delivery_tag} as {outcome.value}: {exc}"
            ) from exc

    def run(self) -> None:
        channel = self._require_channel()
        if self._stop_requested:
            return

        try:
            channel.start_consuming()
        except pika.exceptions.AMQPChannelError as exc:
            self.report_error(f"Consumer channel closed: {exc}", fatal=True)
            raise SubscriptionError(f"Consumer channel closed: {exc}") from exc
        except pika.exceptions.AMQPConnectionError as exc:
            self.report_error(f"Connection lost: {exc}", fatal=True)
            raise BrokerConnectionError(f"Connection lost: {exc}") from exc

    def request_stop(self) -> None:
        if self._stop_requested:
            return
        self._stop_requested = True

        channel = self.channel
        if self.connection is None or self.connection.is_closed or channel is None:
            return
        self.connection.add_callback_threadsafe(channel.stop_consuming)
        self.logger.debug("Requested consumer loop stop.")

    def errors(self) -> Iterator[BrokerErrorEvent]:
        if self._error_stream is None:
            self._error_stream = self._iter_errors()
        return self._error_stream

    def _iter_errors(self) -> Iterator[BrokerErrorEvent]:
        while True:
            while self._pending_errors:
                yield self._pending_errors.popleft()
            if self._closed or self.connection is None or self.connection.is_closed:
                return
            self.connection.process_data_events(time_limit=self.ERROR_POLL_INTERVAL)

    def add_error_listener(self, listener: Callable[[BrokerErrorEvent], None]) -> None:
        self._error_listeners.append(listener)

    def report_error(self, message: str, *, fatal: bool = False) -> BrokerErrorEvent:
        event = BrokerErrorEvent(
            vhost=self.topology.connection.vhost,
            connection_url=self.topology.connection.display_url,
            message=message,
            fatal=fatal,
        )
        self._pending_errors.append(event)
        for listener in list(self._error_listeners):
            try:
                listener(event)
            except Exception:
                self.logger.exception("Broker error listener failed for: %s", message)
        return event

    def _on_connection_blocked(self, connection: Any, method_frame: Any) -> None:
        reason = getattr(method_frame.method, "reason", "")
        self.report_error(f"Connection blocked by broker: {reason}")

    def _on_connection_unblocked(self, connection: Any, method_frame: Any) -> None:
        self.logger.info("Connection unblocked by broker.")

    def _on_message_returned(self, channel: Any, method: Any, properties: Any, body: bytes) -> None:
        self.report_error(
            f"Message {properties.message_id} was returned: {method.reply_code} {method.reply_text}"
        )

    def close(self) -> None:
        if self._closed:
            self.logger.debug("RabbitMQ connection already closed.")
            return
        self._closed = True

        try:
            for channel in (self.confirm_channel, self.channel):
                if channel is not None and not channel.is_closed:
                    channel.close()
            if self.connection is not None and not self.connection.is_closed:
                self.connection.close()
        except pika.exceptions.AMQPError as exc:
            self.logger.error("Failed to close RabbitMQ connection: %s", exc)
            raise ShutdownError(f"Failed to close RabbitMQ connection: {exc}") from exc

        self.logger.info("Closed RabbitMQ connection.")

    def __enter__(self) -> RabbitMQConnection:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
