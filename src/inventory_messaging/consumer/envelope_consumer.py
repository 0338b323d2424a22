"""Consumes inventory envelopes and resolves every delivery with an explicit outcome."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from inventory_messaging.contracts import IBrokerConnection, IEnvelopeCodec
from inventory_messaging.envelope import (
    DeliveryOutcome,
    JSONEnvelopeCodec,
    MessageEnvelope,
    validate_envelope,
)
from inventory_messaging.errors import InvalidContentError, SubscriptionError, ValidationError

from .subscription import Delivery, Subscription

EnvelopeHandler = Callable[[MessageEnvelope], None]


class EnvelopeConsumer:
    """Validates received envelopes and acknowledges or rejects them."""

    def __init__(
        self,
        codec: Optional[IEnvelopeCodec] = None,
        *,
        handler: Optional[EnvelopeHandler] = None,
        requeue_on_handler_error: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.codec = codec or JSONEnvelopeCodec()
        self.handler = handler
        self.requeue_on_handler_error = requeue_on_handler_error
        self.logger = logger or logging.getLogger(__name__)

    def subscribe(self, connection: IBrokerConnection, subscription_name: str) -> Subscription:
        subscription = Subscription(
            connection,
            subscription_name,
            codec=self.codec,
            logger=self.logger,
        )
        subscription.on_message(self._on_message)
        subscription.on_error(self._on_subscription_error)
        subscription.on_invalid_content(self._on_invalid_content)
        return subscription.start()

    def process(self, content: Any, message_id: Optional[str] = None) -> DeliveryOutcome:
        """Decide the outcome for decoded message content.

        Invalid envelopes are always rejected without requeue. Valid envelopes are
        acknowledged unless the application handler raises.
        """
        try:
            envelope = validate_envelope(content)
        except ValidationError as exc:
            self.logger.error("Rejecting invalid message %s: %s", message_id, exc)
            return DeliveryOutcome.REJECTED_NO_REQUEUE

        self.logger.info(
            "Received message %s: item_id=%s text=%s", message_id, envelope.item_id, envelope.text
        )
        if self.handler is None:
            return DeliveryOutcome.ACKNOWLEDGED

        try:
            self.handler(envelope)
        except Exception as exc:
            self.logger.error(
                "Processing error for message %s (item_id=%s): %s",
                message_id,
                envelope.item_id,
                exc,
                exc_info=True,
            )
            if self.requeue_on_handler_error:
                return DeliveryOutcome.REJECTED_REQUEUE
            return DeliveryOutcome.REJECTED_NO_REQUEUE

        return DeliveryOutcome.ACKNOWLEDGED

    def _on_message(self, delivery: Delivery, content: Any) -> None:
        delivery.resolve(self.process(content, delivery.message_id))

    def _on_invalid_content(self, error: InvalidContentError, delivery: Delivery) -> None:
        self.logger.error("Invalid message content %s: %s", delivery.message_id, error)
        delivery.resolve(DeliveryOutcome.REJECTED_NO_REQUEUE)

    def _on_subscription_error(self, error: SubscriptionError) -> None:
        self.logger.error("Subscription error: %s", error)
