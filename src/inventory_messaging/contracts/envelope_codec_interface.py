"""Defines the contract for encoding and decoding envelopes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from inventory_messaging.envelope.message_envelope import MessageEnvelope


class IEnvelopeCodec(ABC):
    """Converts envelopes to and from raw message payloads."""

    content_type: str

    @abstractmethod
    def encode(self, envelope: MessageEnvelope) -> bytes:
        """Serialize an envelope into payload bytes."""

    @abstractmethod
    def decode(self, payload: bytes) -> Any:
        """Convert payload bytes into a generic object; raise ``InvalidContentError`` on failure."""
