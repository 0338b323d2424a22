"""Defines the contract for publishing envelopes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping, Union

if TYPE_CHECKING:
    from inventory_messaging.envelope.message_envelope import MessageEnvelope
    from inventory_messaging.publisher.envelope_publisher import PublishReceipt

    from .broker_connection_interface import IBrokerConnection


class IEnvelopePublisher(ABC):
    """Delivers one validated envelope per call."""

    @abstractmethod
    def publish(
        self,
        connection: IBrokerConnection,
        publication_name: str,
        envelope: Union[MessageEnvelope, Mapping[str, Any]],
    ) -> PublishReceipt:
        """Validate and publish an envelope, returning once the broker outcome is known."""
