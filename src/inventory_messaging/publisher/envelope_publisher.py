"""RabbitMQ implementation of the envelope publisher."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import pika

from inventory_messaging.contracts import IBrokerConnection, IEnvelopeCodec, IEnvelopePublisher
from inventory_messaging.envelope import JSONEnvelopeCodec, MessageEnvelope, validate_envelope
from inventory_messaging.errors import DeliveryReturnedError, PublishError


@dataclass(frozen=True)
class PublishReceipt:
    """Outcome of a successful publish.

    ``confirmed`` is true when the broker acknowledged the message through publisher
    confirms; unconfirmed publications resolve once the message is handed to the socket.
    """

    message_id: str
    publication: str
    envelope: MessageEnvelope
    confirmed: bool


class EnvelopePublisher(IEnvelopePublisher):
    """Publishes validated envelopes through a broker connection."""

    def __init__(
        self,
        codec: Optional[IEnvelopeCodec] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.codec = codec or JSONEnvelopeCodec()
        self.logger = logger or logging.getLogger(__name__)

    def publish(
        self,
        connection: IBrokerConnection,
        publication_name: str,
        envelope: Union[MessageEnvelope, Mapping[str, Any]],
    ) -> PublishReceipt:
        validated = validate_envelope(envelope)

        publication = connection.topology.publication(publication_name)
        routing_key = publication.routing_key or publication.queue
        message_id = uuid.uuid4().hex
        properties = pika.BasicProperties(
            content_type=self.codec.content_type,
            message_id=message_id,
            delivery_mode=pika.spec.PERSISTENT_DELIVERY_MODE if publication.persistent else None,
        )
        body = self.codec.encode(validated)

        channel = connection.publication_channel(publication_name)
        try:
            channel.basic_publish(
                exchange=publication.exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
                mandatory=True,
            )
        except pika.exceptions.UnroutableError as exc:
            self.logger.warning("Message %s was returned by the broker", message_id)
            raise DeliveryReturnedError(
                f"Message {message_id} was returned as undeliverable", message_id=message_id
            ) from exc
        except pika.exceptions.NackError as exc:
            self.logger.error("Broker rejected message %s", message_id)
            raise PublishError(
                f"Broker rejected message {message_id}", message_id=message_id
            ) from exc
        except pika.exceptions.AMQPError as exc:
            self.logger.error("Failed to publish message %s: %s", message_id, exc)
            raise PublishError(
                f"Failed to publish message {message_id}: {exc}", message_id=message_id
            ) from exc

        self.logger.info(
            "Published message %s to %s (item_id=%s, confirmed=%s)",
            message_id,
            publication_name,
            validated.item_id,
            publication.confirm,
        )
        return PublishReceipt(
            message_id=message_id,
            publication=publication_name,
            envelope=validated,
            confirmed=publication.confirm,
        )
