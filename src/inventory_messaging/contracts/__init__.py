"""Contract interfaces for inventory messaging."""

from .broker_connection_interface import IBrokerConnection
from .envelope_codec_interface import IEnvelopeCodec
from .envelope_publisher_interface import IEnvelopePublisher

__all__ = [
    "IBrokerConnection",
    "IEnvelopeCodec",
    "IEnvelopePublisher",
]
