"""Configuration primitives for wiring a `LifecycleController`."""

from __future__ import annotations

import signal
from dataclasses import dataclass, field
from typing import Callable, Tuple

from inventory_messaging.connection import RabbitMQConnection
from inventory_messaging.consumer import EnvelopeConsumer
from inventory_messaging.contracts import IBrokerConnection, IEnvelopeCodec, IEnvelopePublisher
from inventory_messaging.envelope import JSONEnvelopeCodec
from inventory_messaging.publisher import EnvelopePublisher
from inventory_messaging.topology import BrokerTopology

SHUTDOWN_SIGNALS: Tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)


@dataclass(frozen=True)
class LifecycleDependencies:
    """Bundles factory functions and defaults for controller wiring."""

    make_connection: Callable[[BrokerTopology], IBrokerConnection] = field(
        default=lambda topology: RabbitMQConnection(topology)
    )
    make_codec: Callable[[], IEnvelopeCodec] = field(default=JSONEnvelopeCodec)
    make_publisher: Callable[[IEnvelopeCodec], IEnvelopePublisher] = field(
        default=lambda codec: EnvelopePublisher(codec)
    )
    make_consumer: Callable[[IEnvelopeCodec], EnvelopeConsumer] = field(
        default=lambda codec: EnvelopeConsumer(codec)
    )
    shutdown_signals: Tuple[int, ...] = SHUTDOWN_SIGNALS
