"""Subscription handle exposing message, error and invalid-content events."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from inventory_messaging.contracts import IBrokerConnection, IEnvelopeCodec
from inventory_messaging.envelope import DeliveryOutcome, JSONEnvelopeCodec
from inventory_messaging.errors import (
    DeliveryAlreadyResolvedError,
    InvalidContentError,
    SubscriptionError,
)


class Delivery:
    """A single broker delivery that must be resolved exactly once."""

    def __init__(
        self,
        *,
        body: bytes,
        delivery_tag: int,
        message_id: Optional[str],
        redelivered: bool,
        settle: Callable[[int, DeliveryOutcome], None],
    ) -> None:
        self.body = body
        self.delivery_tag = delivery_tag
        self.message_id = message_id
        self.redelivered = redelivered
        self._settle = settle
        self._outcome: Optional[DeliveryOutcome] = None

    @property
    def outcome(self) -> Optional[DeliveryOutcome]:
        return self._outcome

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    def resolve(self, outcome: DeliveryOutcome) -> None:
        if self._outcome is not None:
            raise DeliveryAlreadyResolvedError(
                f"Delivery {self.delivery_tag} already resolved as {self._outcome.value}"
            )
        self._outcome = outcome
        self._settle(self.delivery_tag, outcome)


MessageHandler = Callable[[Delivery, Any], None]
ErrorHandler = Callable[[SubscriptionError], None]
InvalidContentHandler = Callable[[InvalidContentError, Delivery], None]


class Subscription:
    """Consumes a named subscription and dispatches each delivery to registered handlers.

    Handlers are registered with :meth:`on_message`, :meth:`on_error` and
    :meth:`on_invalid_content` before :meth:`start`. Deliveries whose payload cannot be
    decoded go to the invalid-content handler; without one they are rejected without
    requeue. A delivery left unresolved by a failing handler is rejected without requeue.
    """

    def __init__(
        self,
        connection: IBrokerConnection,
        name: str,
        *,
        codec: Optional[IEnvelopeCodec] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.connection = connection
        self.name = name
        self.config = connection.topology.subscription(name)
        self.codec = codec or JSONEnvelopeCodec()
        self.logger = logger or logging.getLogger(__name__)
        self.consumer_tag: Optional[str] = None

        self._message_handler: Optional[MessageHandler] = None
        self._error_handler: Optional[ErrorHandler] = None
        self._invalid_content_handler: Optional[InvalidContentHandler] = None

    def on_message(self, handler: MessageHandler) -> Subscription:
        self._message_handler = handler
        return self

    def on_error(self, handler: ErrorHandler) -> Subscription:
        self._error_handler = handler
        return self

    def on_invalid_content(self, handler: InvalidContentHandler) -> Subscription:
        self._invalid_content_handler = handler
        return self

    def start(self) -> Subscription:
        if self._message_handler is None:
            raise SubscriptionError(f"No message handler registered for subscription {self.name}")

        channel = self.connection.consumer_channel()
        channel.add_on_cancel_callback(self._on_cancelled)
        channel.basic_qos(prefetch_count=self.config.prefetch_count)
        self.consumer_tag = channel.basic_consume(
            queue=self.config.queue,
            on_message_callback=self._on_delivery,
            auto_ack=False,
        )

        self.logger.info(
            "Started consuming %s from %s (prefetch=%s)",
            self.name,
            self.config.queue,
            self.config.prefetch_count,
        )
        return self

    def cancel(self) -> None:
        if self.consumer_tag is None:
            return
        consumer_tag, self.consumer_tag = self.consumer_tag, None
        self.connection.consumer_channel().basic_cancel(consumer_tag)
        self.logger.info("Cancelled subscription %s", self.name)

    def _on_delivery(self, channel: Any, method: Any, properties: Any, body: bytes) -> None:
        delivery = Delivery(
            body=body,
            delivery_tag=method.delivery_tag,
            message_id=properties.message_id,
            redelivered=bool(method.redelivered),
            settle=self.connection.settle,
        )

        try:
            content = self.codec.decode(body)
        except InvalidContentError as exc:
            self._on_invalid_content(delivery, exc)
            return
        except Exception as exc:
            error = InvalidContentError(f"Failed to decode message payload: {exc!r}")
            error.__cause__ = exc
            self._on_invalid_content(delivery, error)
            return

        message_handler = self._message_handler
        if message_handler is None:
            self._emit_error(
                SubscriptionError(f"No message handler registered for subscription {self.name}")
            )
            self._dispatch(delivery, lambda: delivery.resolve(DeliveryOutcome.REJECTED_REQUEUE))
            return
        self._dispatch(delivery, lambda: message_handler(delivery, content))

    def _on_invalid_content(self, delivery: Delivery, error: InvalidContentError) -> None:
        self.logger.warning("Invalid content in message %s: %s", delivery.message_id, error)
        handler = self._invalid_content_handler or _reject_invalid_content
        self._dispatch(delivery, lambda: handler(error, delivery))

    def _dispatch(self, delivery: Delivery, call: Callable[[], None]) -> None:
        try:
            call()
        except SubscriptionError as exc:
            self._emit_error(exc)
            return
        except Exception:
            self.logger.exception("Handler failed for message %s", delivery.message_id)
            if delivery.resolved:
                return
            self.logger.warning(
                "Message %s left unresolved by handler; rejecting without requeue",
                delivery.message_id,
            )
            try:
                delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)
            except SubscriptionError as exc:
                self._emit_error(exc)

    def _on_cancelled(self, method_frame: Any) -> None:
        self.consumer_tag = None
        error = SubscriptionError(f"Subscription {self.name} was cancelled by the broker")
        self._emit_error(error)
        self.connection.report_error(str(error), fatal=True)

    def _emit_error(self, error: SubscriptionError) -> None:
        if self._error_handler is None:
            self.logger.error("Subscription %s error: %s", self.name, error)
            return
        try:
            self._error_handler(error)
        except Exception:
            self.logger.exception("Subscription error handler failed for: %s", error)


def _reject_invalid_content(error: InvalidContentError, delivery: Delivery) -> None:
    delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)
