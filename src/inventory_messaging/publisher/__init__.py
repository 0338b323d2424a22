"""Envelope publishing."""

from .envelope_publisher import EnvelopePublisher, PublishReceipt

__all__ = ["EnvelopePublisher", "PublishReceipt"]
