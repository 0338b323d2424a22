"""Run-to-completion control for publisher and consumer processes."""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from types import FrameType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from inventory_messaging.connection import BrokerErrorEvent
from inventory_messaging.contracts import IBrokerConnection
from inventory_messaging.envelope import MessageEnvelope, validate_envelope
from inventory_messaging.errors import (
    BrokerConnectionError,
    DeliveryReturnedError,
    MessagingError,
    PublishError,
    ShutdownError,
    ValidationError,
)
from inventory_messaging.topology import BrokerTopology

from .lifecycle_config import LifecycleDependencies

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class LifecycleController:
    """Owns the broker session for one process run.

    The publisher role sends a single envelope and exits; the consumer role runs until a
    shutdown signal or a fatal broker error. In both roles the connection opened by
    :meth:`session` is closed exactly once on every exit path, and the returned value is
    the process exit code.
    """

    def __init__(
        self,
        topology: BrokerTopology,
        *,
        dependencies: Optional[LifecycleDependencies] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.topology = topology
        self.dependencies = dependencies or LifecycleDependencies()
        self.logger = logger or logging.getLogger(__name__)
        self.codec = self.dependencies.make_codec()
        self.connection: Optional[IBrokerConnection] = None

        self._shutdown_requested = False
        self._close_failed = False
        self._fatal_error = False

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        dependencies: Optional[LifecycleDependencies] = None,
    ) -> "LifecycleController":
        return cls(BrokerTopology.from_env(environ), dependencies=dependencies)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    @contextmanager
    def session(self) -> Iterator[IBrokerConnection]:
        """Open a broker connection and guarantee a single close on exit.

        A close failure is logged and recorded rather than raised, so it never masks the
        error that ended the session.
        """
        connection = self.dependencies.make_connection(self.topology)
        self.connection = connection
        connection.add_error_listener(self._on_broker_error)
        if self._shutdown_requested:
            connection.request_stop()

        try:
            connection.open()
            yield connection
        finally:
            self._close(connection)

    def _close(self, connection: IBrokerConnection) -> None:
        try:
            connection.close()
        except ShutdownError as exc:
            self._close_failed = True
            self.logger.error("Error during broker shutdown: %s", exc)
        else:
            self.logger.info("Broker shutdown complete")

    def run_publisher(
        self,
        publication_name: str,
        envelope: Union[MessageEnvelope, Mapping[str, Any]],
    ) -> int:
        self._close_failed = False
        try:
            validate_envelope(envelope)
            publisher = self.dependencies.make_publisher(self.codec)
            with self.session() as connection:
                receipt = publisher.publish(connection, publication_name, envelope)
                self.logger.info(
                    "Message %s sent successfully: %s",
                    receipt.message_id,
                    receipt.envelope.to_dict(),
                )
        except ValidationError as exc:
            self.logger.error("Invalid message, nothing was sent: %s", exc)
            return EXIT_FAILURE
        except DeliveryReturnedError as exc:
            self.logger.error("Message %s was returned by the broker: %s", exc.message_id, exc)
            return EXIT_FAILURE
        except PublishError as exc:
            self.logger.error("Publication error for message %s: %s", exc.message_id, exc)
            return EXIT_FAILURE
        except BrokerConnectionError as exc:
            self.logger.error("Fatal error: %s", exc)
            return EXIT_FAILURE
        except MessagingError as exc:
            self.logger.error("Error in send operation: %s", exc)
            return EXIT_FAILURE

        return EXIT_FAILURE if self._close_failed else EXIT_SUCCESS

    def run_consumer(self, subscription_name: str) -> int:
        self._close_failed = False
        self._fatal_error = False
        consumer = self.dependencies.make_consumer(self.codec)
        previous_handlers = self._install_signal_handlers()
        try:
            with self.session() as connection:
                consumer.subscribe(connection, subscription_name)
                self.logger.info("Waiting for messages. To exit press CTRL+C")
                connection.run()
        except MessagingError as exc:
            self.logger.error("Fatal error: %s", exc)
            return EXIT_FAILURE
        finally:
            self._restore_signal_handlers(previous_handlers)

        if self._fatal_error:
            self.logger.error("Consumer stopped after a fatal broker error")
            return EXIT_FAILURE
        return EXIT_FAILURE if self._close_failed else EXIT_SUCCESS

    def request_shutdown(self, signum: Optional[int] = None, frame: Optional[FrameType] = None) -> None:
        """Start the close sequence once; later requests are ignored."""
        if self._shutdown_requested:
            self.logger.info("Shutdown already in progress; ignoring signal %s", signum)
            return
        self._shutdown_requested = True

        self.logger.info("Shutting down...")
        if self.connection is not None:
            self.connection.request_stop()

    def _on_broker_error(self, event: BrokerErrorEvent) -> None:
        self.logger.error(
            "Broker error: %s (vhost=%s, connection=%s)",
            event.message,
            event.vhost,
            event.connection_url,
        )
        if event.fatal:
            self._fatal_error = True
            self.request_shutdown()

    def _install_signal_handlers(self) -> Dict[int, Any]:
        previous: Dict[int, Any] = {}
        for signum in self.dependencies.shutdown_signals:
            previous[signum] = signal.signal(signum, self.request_shutdown)
        return previous

    def _restore_signal_handlers(self, previous: Dict[int, Any]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
