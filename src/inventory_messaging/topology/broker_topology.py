"""Broker topology: connection parameters, queues, publications and subscriptions."""

from __future__ import annotations

import os
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, unquote, urlsplit

import pika

from inventory_messaging.errors import ConfigurationError

DEFAULT_QUEUE_NAME = "product_inventory"
DEFAULT_PUBLICATION_NAME = "inventory_check"
DEFAULT_SUBSCRIPTION_NAME = "inventory_listener"

_DEFAULT_PORTS = {"amqp": 5672, "amqps": 5671}


@dataclass(frozen=True)
class ConnectionConfig:
    """Connection parameters for a single broker session.

    ``connection_attempts`` is always 1 when building pika parameters: opening a
    session fails fast and the caller decides whether to retry.
    """

    host: str
    port: Optional[int] = None
    user: str = "guest"
    password: str = "guest"
    vhost: str = "/"
    protocol: str = "amqp"
    heartbeat: int = 60
    blocked_connection_timeout: float = 300.0
    socket_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigurationError("RabbitMQ host must be provided.")
        if self.protocol not in _DEFAULT_PORTS:
            raise ConfigurationError(f"Unsupported broker protocol: {self.protocol}")

    @property
    def effective_port(self) -> int:
        return self.port or _DEFAULT_PORTS[self.protocol]

    @property
    def display_url(self) -> str:
        """Connection URL with the password masked, safe to log."""
        vhost = quote(self.vhost, safe="")
        return f"{self.protocol}://{self.user}:***@{self.host}:{self.effective_port}/{vhost}"

    @classmethod
    def from_url(cls, url: str) -> "ConnectionConfig":
        url = url.strip()
        if not url:
            raise ConfigurationError("RabbitMQ URL must not be empty.")

        try:
            parts = urlsplit(url)
            port = parts.port
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RabbitMQ URL provided: {url}") from exc

        host = parts.hostname
        if parts.scheme not in _DEFAULT_PORTS or not host:
            raise ConfigurationError(f"Invalid RabbitMQ URL provided: {url}")

        vhost = unquote(parts.path[1:]) if len(parts.path) > 1 else "/"
        return cls(
            host=host,
            port=port,
            user=unquote(parts.username) if parts.username else "guest",
            password=unquote(parts.password) if parts.password else "guest",
            vhost=vhost,
            protocol=parts.scheme,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConnectionConfig":
        """Resolve connection settings from ``RABBITMQ_URL`` or the ``RABBITMQ_*`` variables."""
        env = os.environ if environ is None else environ

        url = (env.get("RABBITMQ_URL") or "").strip()
        if url:
            return cls.from_url(url)

        host = (env.get("RABBITMQ_HOST") or "").strip()
        if not host:
            raise ConfigurationError(
                "RabbitMQ connection must be provided via RABBITMQ_URL or RABBITMQ_HOST "
                "environment variables."
            )

        port_value = env.get("RABBITMQ_PORT")
        try:
            port = int(port_value) if port_value else None
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RABBITMQ_PORT: {port_value}") from exc

        return cls(
            host=host,
            port=port,
            user=env.get("RABBITMQ_USER", "guest"),
            password=env.get("RABBITMQ_PASSWORD", "guest"),
            vhost=env.get("RABBITMQ_VHOST", "/"),
            protocol=env.get("RABBITMQ_PROTOCOL", "amqp").lower(),
        )

    def to_parameters(self) -> pika.ConnectionParameters:
        ssl_options = None
        if self.protocol == "amqps":
            ssl_options = pika.SSLOptions(ssl.create_default_context(), self.host)

        return pika.ConnectionParameters(
            host=self.host,
            port=self.effective_port,
            virtual_host=self.vhost,
            credentials=pika.PlainCredentials(self.user, self.password),
            heartbeat=self.heartbeat,
            blocked_connection_timeout=self.blocked_connection_timeout,
            socket_timeout=self.socket_timeout,
            connection_attempts=1,
            ssl_options=ssl_options,
        )


@dataclass(frozen=True)
class QueueConfig:
    """Encapsulates queue declaration options.

    Provide ``exchange`` and optionally ``routing_key`` when the queue should be bound to
    a non-default exchange. When ``routing_key`` is omitted, the queue name is used.
    """

    queue_name: str
    durable: bool = True
    arguments: Dict[str, Any] = field(default_factory=dict)
    exchange: str = ""
    routing_key: str = ""


@dataclass(frozen=True)
class PublicationConfig:
    """Where a named publication sends messages and whether the broker must confirm them."""

    queue: str
    confirm: bool = True
    exchange: str = ""
    routing_key: str = ""
    persistent: bool = False


@dataclass(frozen=True)
class SubscriptionConfig:
    """The queue a named subscription consumes and its in-flight delivery bound."""

    queue: str
    prefetch_count: int = 1

    def __post_init__(self) -> None:
        if self.prefetch_count < 1:
            raise ConfigurationError("prefetch_count must be at least 1.")


@dataclass(frozen=True)
class BrokerTopology:
    """Immutable broker topology used for the whole process lifetime."""

    connection: ConnectionConfig
    queues: Mapping[str, QueueConfig] = field(default_factory=dict)
    publications: Mapping[str, PublicationConfig] = field(default_factory=dict)
    subscriptions: Mapping[str, SubscriptionConfig] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, publication in self.publications.items():
            if publication.queue not in self.queues:
                raise ConfigurationError(
                    f"Publication {name!r} targets undeclared queue {publication.queue!r}."
                )
        for name, subscription in self.subscriptions.items():
            if subscription.queue not in self.queues:
                raise ConfigurationError(
                    f"Subscription {name!r} reads undeclared queue {subscription.queue!r}."
                )

    def queue(self, name: str) -> QueueConfig:
        try:
            return self.queues[name]
        except KeyError:
            raise ConfigurationError(f"Unknown queue: {name}") from None

    def publication(self, name: str) -> PublicationConfig:
        try:
            return self.publications[name]
        except KeyError:
            raise ConfigurationError(f"Unknown publication: {name}") from None

    def subscription(self, name: str) -> SubscriptionConfig:
        try:
            return self.subscriptions[name]
        except KeyError:
            raise ConfigurationError(f"Unknown subscription: {name}") from None

    @classmethod
    def inventory(cls, connection: ConnectionConfig) -> "BrokerTopology":
        """Default topology: one non-durable inventory queue with a confirmed publication."""
        return cls(
            connection=connection,
            queues={
                DEFAULT_QUEUE_NAME: QueueConfig(queue_name=DEFAULT_QUEUE_NAME, durable=False),
            },
            publications={
                DEFAULT_PUBLICATION_NAME: PublicationConfig(queue=DEFAULT_QUEUE_NAME, confirm=True),
            },
            subscriptions={
                DEFAULT_SUBSCRIPTION_NAME: SubscriptionConfig(
                    queue=DEFAULT_QUEUE_NAME, prefetch_count=1
                ),
            },
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BrokerTopology":
        return cls.inventory(ConnectionConfig.from_env(environ))
