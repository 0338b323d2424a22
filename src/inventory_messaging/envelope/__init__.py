"""Message envelope model and wire codec."""

from .delivery_outcome import DeliveryOutcome
from .json_envelope_codec import JSONEnvelopeCodec
from .message_envelope import MessageEnvelope, is_valid_envelope, validate_envelope

__all__ = [
    "DeliveryOutcome",
    "JSONEnvelopeCodec",
    "MessageEnvelope",
    "is_valid_envelope",
    "validate_envelope",
]
