"""Messaging package providing a confirmed inventory publisher and a validating consumer."""

from .connection import BrokerErrorEvent, RabbitMQConnection
from .consumer import Delivery, EnvelopeConsumer, Subscription
from .contracts import IBrokerConnection, IEnvelopeCodec, IEnvelopePublisher
from .envelope import DeliveryOutcome, JSONEnvelopeCodec, MessageEnvelope, validate_envelope
from .errors import (
    BrokerConnectionError,
    ConfigurationError,
    DeliveryAlreadyResolvedError,
    DeliveryReturnedError,
    InvalidContentError,
    MessagingError,
    PublishError,
    ShutdownError,
    SubscriptionError,
    ValidationError,
)
from .lifecycle import LifecycleController, LifecycleDependencies
from .publisher import EnvelopePublisher, PublishReceipt
from .topology import (
    BrokerTopology,
    ConnectionConfig,
    PublicationConfig,
    QueueConfig,
    SubscriptionConfig,
)

__all__ = [
    "BrokerConnectionError",
    "BrokerErrorEvent",
    "BrokerTopology",
    "ConfigurationError",
    "ConnectionConfig",
    "Delivery",
    "DeliveryAlreadyResolvedError",
    "DeliveryOutcome",
    "DeliveryReturnedError",
    "EnvelopeConsumer",
    "EnvelopePublisher",
    "IBrokerConnection",
    "IEnvelopeCodec",
    "IEnvelopePublisher",
    "InvalidContentError",
    "JSONEnvelopeCodec",
    "LifecycleController",
    "LifecycleDependencies",
    "MessageEnvelope",
    "MessagingError",
    "PublicationConfig",
    "PublishError",
    "PublishReceipt",
    "QueueConfig",
    "RabbitMQConnection",
    "ShutdownError",
    "Subscription",
    "SubscriptionConfig",
    "ValidationError",
    "validate_envelope",
]
