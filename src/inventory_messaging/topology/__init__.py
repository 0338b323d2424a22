"""Broker topology configuration."""

from .broker_topology import (
    DEFAULT_PUBLICATION_NAME,
    DEFAULT_QUEUE_NAME,
    DEFAULT_SUBSCRIPTION_NAME,
    BrokerTopology,
    ConnectionConfig,
    PublicationConfig,
    QueueConfig,
    SubscriptionConfig,
)

__all__ = [
    "BrokerTopology",
    "ConnectionConfig",
    "PublicationConfig",
    "QueueConfig",
    "SubscriptionConfig",
    "DEFAULT_PUBLICATION_NAME",
    "DEFAULT_QUEUE_NAME",
    "DEFAULT_SUBSCRIPTION_NAME",
]
