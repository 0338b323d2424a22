"""RabbitMQ connection management."""

from .rabbitmq_connection import BrokerErrorEvent, RabbitMQConnection

__all__ = ["BrokerErrorEvent", "RabbitMQConnection"]
