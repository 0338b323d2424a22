"""Defines the contract for broker connections."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Type

if TYPE_CHECKING:
    from pika.adapters.blocking_connection import BlockingChannel

    from inventory_messaging.connection.rabbitmq_connection import BrokerErrorEvent
    from inventory_messaging.envelope.delivery_outcome import DeliveryOutcome
    from inventory_messaging.topology import BrokerTopology


class IBrokerConnection(ABC):
    """Owns exactly one logical session with the broker."""

    topology: BrokerTopology

    @abstractmethod
    def open(self) -> BlockingChannel:
        """Establish the session and declare queues; raise ``BrokerConnectionError`` on failure."""

    @abstractmethod
    def publication_channel(self, publication_name: str) -> BlockingChannel:
        """Return the channel that carries messages for a named publication."""

    @abstractmethod
    def consumer_channel(self) -> BlockingChannel:
        """Return the channel used for subscriptions."""

    @abstractmethod
    def settle(self, delivery_tag: int, outcome: DeliveryOutcome) -> None:
        """Acknowledge or reject a delivery; raise ``SubscriptionError`` on failure."""

    @abstractmethod
    def run(self) -> None:
        """Dispatch deliveries until a stop is requested."""

    @abstractmethod
    def request_stop(self) -> None:
        """Ask a running dispatch loop to return; safe to call from a signal handler."""

    @abstractmethod
    def errors(self) -> Iterator[BrokerErrorEvent]:
        """Return the lazy stream of asynchronous broker error events."""

    @abstractmethod
    def add_error_listener(self, listener: Callable[[BrokerErrorEvent], None]) -> None:
        """Register a callback invoked for each broker error event as it occurs."""

    @abstractmethod
    def report_error(self, message: str, *, fatal: bool = False) -> BrokerErrorEvent:
        """Record an asynchronous error observed on this session."""

    @abstractmethod
    def close(self) -> None:
        """Close the session; raise ``ShutdownError`` on failure, no-op when already closed."""

    @abstractmethod
    def __enter__(self) -> IBrokerConnection:
        """Enter a managed connection context."""

    @abstractmethod
    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Exit a managed connection context."""
