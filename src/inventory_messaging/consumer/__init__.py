"""Envelope consumer and subscription handling."""

from .envelope_consumer import EnvelopeConsumer
from .subscription import Delivery, Subscription

__all__ = [
    "Delivery",
    "EnvelopeConsumer",
    "Subscription",
]
